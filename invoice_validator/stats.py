"""Issue log statistics and filtering."""

from __future__ import annotations

from collections import Counter
from typing import Iterable, List

from .models import IssueFilter, IssueSort, ProcessedFile, ValidationIssue, ValidationStats

SEVERITY_ORDER = {"error": 0, "warning": 1, "info": 2}


def summarize(issues: Iterable[ValidationIssue]) -> ValidationStats:
    issues = list(issues)
    severities = Counter(issue.severity for issue in issues)
    auto_fixed = sum(1 for issue in issues if issue.auto_fixed)

    return ValidationStats(
        total_issues=len(issues),
        critical_errors=severities["error"],
        warnings=severities["warning"],
        info_messages=severities["info"],
        auto_fixed=auto_fixed,
        manual_review_needed=sum(1 for issue in issues if issue.severity == "error" and not issue.auto_fixed),
        by_category=dict(Counter(issue.category for issue in issues)),
        auto_fixed_percent=round(100.0 * auto_fixed / len(issues), 1) if issues else 0.0,
    )


def summarize_files(files: Iterable[ProcessedFile]) -> ValidationStats:
    return summarize(issue for processed in files for issue in processed.result.issues)


def filter_issues(
    issues: Iterable[ValidationIssue],
    mode: IssueFilter = "all",
    query: str = "",
    sort_by: IssueSort = "severity",
) -> List[ValidationIssue]:
    """
    Narrow an issue log the way a reviewer works through it.

    mode: all | errors | warnings | auto-fixed | manual-review
    query: case-insensitive substring of field, message or category
    sort_by: severity (errors first) | field | category; ties keep log order
    """
    selected = list(issues)

    if mode == "errors":
        selected = [i for i in selected if i.severity == "error"]
    elif mode == "warnings":
        selected = [i for i in selected if i.severity == "warning"]
    elif mode == "auto-fixed":
        selected = [i for i in selected if i.auto_fixed]
    elif mode == "manual-review":
        selected = [i for i in selected if i.severity == "error" and not i.auto_fixed]
    elif mode != "all":
        raise ValueError(f"unknown issue filter: {mode!r}")

    if query:
        needle = query.lower()
        selected = [
            i for i in selected
            if needle in i.field.lower() or needle in i.message.lower() or needle in i.category
        ]

    if sort_by == "severity":
        selected.sort(key=lambda i: SEVERITY_ORDER[i.severity])
    elif sort_by == "field":
        selected.sort(key=lambda i: i.field)
    elif sort_by == "category":
        selected.sort(key=lambda i: i.category)
    else:
        raise ValueError(f"unknown sort key: {sort_by!r}")

    return selected
