from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["error", "warning", "info"]
Confidence = Literal["high", "medium", "low"]
Category = Literal["tpin", "date", "vat", "amount", "mandatory", "duplicate", "currency", "schema"]
FileKind = Literal["xml", "csv", "json"]
OutputFormat = Literal["original", "xml", "csv", "json"]
IssueFilter = Literal["all", "errors", "warnings", "auto-fixed", "manual-review"]
IssueSort = Literal["severity", "field", "category"]


class ValidationIssue(BaseModel):
    model_config = ConfigDict(frozen=True)

    severity: Severity
    field: str = Field(examples=["TPIN (Record 1)"])
    message: str
    original_value: Any = None
    fixed_value: Any = None
    auto_fixed: bool = False
    confidence: Confidence = "high"
    category: Category


class ValidationResult(BaseModel):
    is_valid: bool
    issues: List[ValidationIssue] = Field(default_factory=list)
    original_data: Any = None
    fixed_data: Any = None


class ValidationStats(BaseModel):
    total_issues: int = 0
    critical_errors: int = 0
    warnings: int = 0
    info_messages: int = 0
    auto_fixed: int = 0
    manual_review_needed: int = 0
    by_category: Dict[str, int] = Field(default_factory=dict)
    auto_fixed_percent: float = 0.0


class ProcessedFile(BaseModel):
    name: str
    kind: FileKind
    result: ValidationResult


class FileFailure(BaseModel):
    name: str
    error: str


class BatchResult(BaseModel):
    files: List[ProcessedFile] = Field(default_factory=list)
    failures: List[FileFailure] = Field(default_factory=list)


class CorrectedFile(BaseModel):
    name: str
    kind: FileKind
    sha256: str
    encoding: str = Field(default="utf-8")
    content_b64: str


class FileIssues(BaseModel):
    name: str
    issues: List[ValidationIssue] = Field(default_factory=list)


class ValidateResponse(BaseModel):
    file: ProcessedFile
    stats: ValidationStats
    corrected: CorrectedFile
    normalizations: Dict[str, Any] = Field(default_factory=dict)
    review: List[ValidationIssue] = Field(default_factory=list)


class BatchResponse(BaseModel):
    files: List[ProcessedFile] = Field(default_factory=list)
    failures: List[FileFailure] = Field(default_factory=list)
    stats: ValidationStats
    valid_files: Optional[int] = Field(default=None, examples=[None])
    review: List[FileIssues] = Field(default_factory=list)


class HealthResponse(BaseModel):
    ok: bool = True
