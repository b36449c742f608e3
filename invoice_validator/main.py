import base64
import hashlib
import logging
import os
from typing import List

from fastapi import FastAPI, UploadFile, File, HTTPException, Query
from .decoders import decode, detect_kind
from .encoders import encode
from .engine import validate
from .errors import FormatError
from .models import (
    BatchResponse,
    CorrectedFile,
    FileIssues,
    HealthResponse,
    IssueFilter,
    IssueSort,
    OutputFormat,
    ProcessedFile,
    ValidateResponse,
)
from .normalize import decode_bytes
from .processing import corrected_file_name, process_batch
from .stats import filter_issues, summarize, summarize_files

LOG_LEVEL = os.environ.get("INVOICE_VALIDATOR_LOG_LEVEL", "INFO").upper()
MAX_UPLOAD_BYTES = int(os.environ.get("INVOICE_VALIDATOR_MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))

logging.basicConfig(level=LOG_LEVEL, format="[%(levelname)s] %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(
    title="invoice-validator",
    description="Smart Invoice validation and auto-correction for XML, CSV and JSON invoices",
    version="0.1.0",
)


def _sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


async def _read_upload(file: UploadFile) -> bytes:
    raw = await file.read()
    if len(raw) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail=f"{file.filename} exceeds {MAX_UPLOAD_BYTES} bytes")
    return raw


@app.get("/health", response_model=HealthResponse)
def health():
    return {"ok": True}


@app.post("/validate", response_model=ValidateResponse)
async def validate_file(
    file: UploadFile = File(...),
    output: OutputFormat = Query(default="original"),
    issues: IssueFilter = Query(default="all"),
    q: str = Query(default=""),
    sort: IssueSort = Query(default="severity"),
):
    raw = await _read_upload(file)
    try:
        kind = detect_kind(file.filename or "")
        text, decoding_report = decode_bytes(raw)
        decoded = decode(text, kind)
    except FormatError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    result = validate(decoded)
    processed = ProcessedFile(name=file.filename, kind=kind, result=result)

    out_kind = kind if output == "original" else output
    content = encode(result.fixed_data, out_kind).encode("utf-8")
    logger.info("%s: %d issue(s), valid=%s", file.filename, len(result.issues), result.is_valid)

    return ValidateResponse(
        file=processed,
        stats=summarize(result.issues),
        corrected=CorrectedFile(
            name=corrected_file_name(file.filename, out_kind),
            kind=out_kind,
            sha256=_sha256_hex(content),
            content_b64=base64.b64encode(content).decode("ascii"),
        ),
        normalizations=decoding_report,
        review=filter_issues(result.issues, mode=issues, query=q, sort_by=sort),
    )


@app.post("/batch", response_model=BatchResponse)
async def validate_batch(
    files: List[UploadFile] = File(...),
    issues: IssueFilter = Query(default="all"),
    q: str = Query(default=""),
    sort: IssueSort = Query(default="severity"),
):
    uploads = [(file.filename or "", await _read_upload(file)) for file in files]
    batch = process_batch(uploads)

    return BatchResponse(
        files=batch.files,
        failures=batch.failures,
        stats=summarize_files(batch.files),
        valid_files=sum(1 for processed in batch.files if processed.result.is_valid),
        review=[
            FileIssues(name=processed.name, issues=filter_issues(processed.result.issues, mode=issues, query=q, sort_by=sort))
            for processed in batch.files
        ],
    )
