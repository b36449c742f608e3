import pytest

from invoice_validator.models import ProcessedFile, ValidationIssue, ValidationResult
from invoice_validator.stats import filter_issues, summarize, summarize_files

ISSUES = [
    ValidationIssue(severity="info", field="Currency (Record 1)", message="Currency set to ZMW",
                    category="currency", auto_fixed=True),
    ValidationIssue(severity="error", field="TPIN (Record 1)", message="TPIN normalized",
                    category="tpin", auto_fixed=True, confidence="low"),
    ValidationIssue(severity="warning", field="LineTotal (Record 1, Line 1)", message="Line total recalculated",
                    category="amount", auto_fixed=True),
    ValidationIssue(severity="error", field="InvoiceNumber (Record 2)", message="Duplicate invoice number",
                    category="duplicate"),
    ValidationIssue(severity="error", field="GrandTotal (Record 2)", message="Grand total cannot be negative",
                    category="amount"),
]


def test_summarize_empty_log():
    stats = summarize([])
    assert stats.total_issues == 0
    assert stats.critical_errors == stats.warnings == stats.info_messages == 0
    assert stats.auto_fixed == stats.manual_review_needed == 0
    assert stats.by_category == {}
    assert stats.auto_fixed_percent == 0.0


def test_summarize_counts():
    stats = summarize(ISSUES)
    assert stats.total_issues == 5
    assert stats.critical_errors == 3
    assert stats.warnings == 1
    assert stats.info_messages == 1
    assert stats.auto_fixed == 3
    assert stats.manual_review_needed == 2
    assert stats.by_category == {"currency": 1, "tpin": 1, "amount": 2, "duplicate": 1}
    assert stats.auto_fixed_percent == 60.0


def test_summarize_files_spans_every_file():
    files = [
        ProcessedFile(name="a.json", kind="json", result=ValidationResult(is_valid=False, issues=ISSUES[:2])),
        ProcessedFile(name="b.xml", kind="xml", result=ValidationResult(is_valid=False, issues=ISSUES[2:])),
    ]
    assert summarize_files(files) == summarize(ISSUES)


def test_issues_are_immutable():
    with pytest.raises(Exception):
        ISSUES[0].severity = "error"


@pytest.mark.parametrize(
    "mode, fields",
    [
        ("errors", ["TPIN (Record 1)", "InvoiceNumber (Record 2)", "GrandTotal (Record 2)"]),
        ("warnings", ["LineTotal (Record 1, Line 1)"]),
        ("auto-fixed", ["TPIN (Record 1)", "LineTotal (Record 1, Line 1)", "Currency (Record 1)"]),
        ("manual-review", ["InvoiceNumber (Record 2)", "GrandTotal (Record 2)"]),
    ],
)
def test_filter_modes(mode, fields):
    assert [i.field for i in filter_issues(ISSUES, mode=mode)] == fields


def test_filter_default_sorts_by_severity_and_keeps_log_order():
    assert [i.severity for i in filter_issues(ISSUES)] == ["error", "error", "error", "warning", "info"]
    assert filter_issues(ISSUES)[0].field == "TPIN (Record 1)"


def test_filter_search_matches_field_message_and_category():
    assert [i.field for i in filter_issues(ISSUES, query="record 2")] == [
        "InvoiceNumber (Record 2)",
        "GrandTotal (Record 2)",
    ]
    assert [i.category for i in filter_issues(ISSUES, query="DUPLICATE")] == ["duplicate"]
    assert len(filter_issues(ISSUES, query="amount")) == 2


def test_filter_sort_by_field_and_category():
    assert [i.field for i in filter_issues(ISSUES, sort_by="field")][0] == "Currency (Record 1)"
    assert [i.category for i in filter_issues(ISSUES, sort_by="category")] == [
        "amount", "amount", "currency", "duplicate", "tpin",
    ]


def test_filter_rejects_unknown_options():
    with pytest.raises(ValueError):
        filter_issues(ISSUES, mode="everything")
    with pytest.raises(ValueError):
        filter_issues(ISSUES, sort_by="date")
