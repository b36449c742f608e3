"""Per-file pipeline: name + bytes -> ProcessedFile."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import PurePath
from typing import Iterable, List, Optional, Tuple, Union

from .decoders import decode, detect_kind
from .engine import ValidationContext, validate
from .errors import FormatError
from .models import BatchResult, FileFailure, ProcessedFile

logger = logging.getLogger(__name__)

Upload = Tuple[str, Union[bytes, str]]


def process_file(name: str, raw: Union[bytes, str], context: Optional[ValidationContext] = None) -> ProcessedFile:
    """Detect the kind from ``name``, decode and validate. Raises FormatError."""
    kind = detect_kind(name)
    decoded = decode(raw, kind)
    result = validate(decoded, context)
    return ProcessedFile(name=name, kind=kind, result=result)


def _process_one(upload: Upload) -> Union[ProcessedFile, FileFailure]:
    name, raw = upload
    try:
        return process_file(name, raw)
    except FormatError as exc:
        logger.warning("skipping %s: %s", name, exc.message)
        return FileFailure(name=name, error=str(exc))


def process_batch(files: Iterable[Upload], max_workers: Optional[int] = None) -> BatchResult:
    """
    Process files independently; one bad file never stops the rest.

    Each file gets its own ValidationContext, so duplicate invoice numbers
    are only detected within a file.
    """
    uploads = list(files)
    if max_workers and max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            outcomes: List[Union[ProcessedFile, FileFailure]] = list(pool.map(_process_one, uploads))
    else:
        outcomes = [_process_one(upload) for upload in uploads]

    batch = BatchResult()
    for outcome in outcomes:
        if isinstance(outcome, FileFailure):
            batch.failures.append(outcome)
        else:
            batch.files.append(outcome)
    return batch


def corrected_file_name(name: str, kind: Optional[str] = None) -> str:
    """``invoice.json`` -> ``invoice_corrected.json`` (or the requested extension)."""
    path = PurePath(name)
    extension = kind or path.suffix.lstrip(".")
    return f"{path.stem}_corrected.{extension}"
