"""
Validation & auto-fix engine.

Walks one decoded payload (a record or a list of records), evaluates the
Smart Invoice rule set against each record and writes corrections into a
deep copy. The decoded input is never modified.

Rules run in a fixed order per record; later rules read values earlier rules
fixed (totals are recomputed with the VAT rate as corrected above them).
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from . import rules
from .models import ValidationIssue, ValidationResult
from .normalize import normalize_date, normalize_tpin, parse_number, round2
from .tree import (
    collapse_repeated_child,
    extract_primitive,
    first_value,
    is_blank,
    is_mapping,
    mandatory_candidates,
    present_key,
    singleton_wrapper_key,
)

logger = logging.getLogger(__name__)

ALIASES = rules.FIELD_ALIASES


@dataclass
class ValidationContext:
    """State shared by the records of one batch: invoice number -> first record index."""

    seen_invoice_numbers: Dict[str, int] = field(default_factory=dict)

    def register_invoice_number(self, number: str, index: int) -> Optional[int]:
        """Remember ``number``; return the index it was first seen at if it is a repeat."""
        first = self.seen_invoice_numbers.get(number)
        if first is None:
            self.seen_invoice_numbers[number] = index
        return first


def _differs(current: Optional[float], expected: float) -> bool:
    return current is None or round(abs(current - expected), 6) > rules.AMOUNT_TOLERANCE


def _fmt(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class _RecordValidator:
    def __init__(self, record: Dict[str, Any], fixed: Dict[str, Any], index: int, context: ValidationContext):
        self.record = record
        self.fixed = fixed
        self.index = index
        self.context = context
        self.issues: List[ValidationIssue] = []

    def issue(self, severity: str, name: str, message: str, category: str, line: Optional[int] = None, **kwargs: Any) -> None:
        locator = f"Record {self.index}" if line is None else f"Record {self.index}, Line {line}"
        self.issues.append(
            ValidationIssue(severity=severity, field=f"{name} ({locator})", message=message, category=category, **kwargs)
        )

    def run(self) -> List[ValidationIssue]:
        self.check_mandatory_fields()
        self.check_invoice_number()
        self.check_currency()
        self.check_tpin()
        self.check_dates()
        self.check_vat_rate()
        self.check_line_items()
        self.check_totals()
        self.check_schema()
        return self.issues

    def check_mandatory_fields(self) -> None:
        for name in rules.MANDATORY_INVOICE_FIELDS:
            if all(is_blank(self.record.get(key)) for key in mandatory_candidates(name)):
                self.issue(
                    "error", name, "Mandatory field missing", "mandatory",
                    original_value=rules.MISSING, fixed_value=rules.REQUIRED,
                )

    def check_invoice_number(self) -> None:
        key, number = first_value(self.record, ALIASES["invoice_number"])
        if key is None:
            self.issue(
                "error", "InvoiceNumber", "Invoice number is mandatory", "mandatory",
                original_value=rules.MISSING, fixed_value=rules.REQUIRED,
            )
            return

        number = _fmt(number).strip()
        first = self.context.register_invoice_number(number, self.index)
        if first is not None:
            self.issue(
                "error", key,
                f"Duplicate invoice number detected (first seen in Record {first}). Each invoice must have a unique number",
                "duplicate",
                original_value=number, fixed_value=rules.MANUAL_REVIEW,
            )

    def check_currency(self) -> None:
        aliases = ALIASES["currency"]
        key, value = first_value(self.record, aliases)
        if key is not None:
            code = str(value).strip().upper()
            if code not in rules.ACCEPTED_CURRENCIES:
                self.fixed[key] = rules.CURRENCY_CODE
                self.issue(
                    "warning", key, f"Currency must be {rules.CURRENCY_CODE}", "currency",
                    original_value=value, fixed_value=rules.CURRENCY_CODE, auto_fixed=True,
                )
            return

        key = present_key(self.record, aliases) or aliases[0]
        self.fixed[key] = rules.CURRENCY_CODE
        self.issue(
            "info", key, f"Currency set to {rules.CURRENCY_CODE}", "currency",
            original_value=rules.MISSING, fixed_value=rules.CURRENCY_CODE, auto_fixed=True,
        )

    def check_tpin(self) -> None:
        key = present_key(self.record, ALIASES["tpin"])
        if key is None:
            return

        value = extract_primitive(self.record[key])
        normalized, confidence = normalize_tpin(value)
        if normalized != value:
            self.fixed[key] = normalized
            self.issue(
                "error" if confidence == "low" else "warning", key,
                f"TPIN normalized to {rules.TPIN_LENGTH}-digit format ({normalized})", "tpin",
                original_value=value, fixed_value=normalized, auto_fixed=True, confidence=confidence,
            )

    def check_dates(self) -> None:
        for key in rules.DATE_FIELDS:
            value = extract_primitive(self.record.get(key))
            if is_blank(value):
                continue
            normalized, confidence = normalize_date(value)
            if normalized != value:
                self.fixed[key] = normalized
                self.issue(
                    "error" if confidence == "low" else "info", key,
                    f"Date normalized to YYYY-MM-DD format ({normalized})", "date",
                    original_value=value, fixed_value=normalized, auto_fixed=True, confidence=confidence,
                )

    def check_vat_rate(self) -> None:
        aliases = ALIASES["vat_rate"]
        key = present_key(self.record, aliases) or aliases[0]
        raw = extract_primitive(self.record.get(key))
        rate = parse_number(raw)

        if rate is None or not 0 <= rate <= 100:
            self.fixed[key] = rules.VAT_RATE_STANDARD
            self.issue(
                "warning", key, f"VAT rate set to standard {rules.VAT_RATE_STANDARD}%", "vat",
                original_value=rules.MISSING if is_blank(raw) else raw,
                fixed_value=rules.VAT_RATE_STANDARD, auto_fixed=True,
            )
        elif rate not in rules.VALID_VAT_RATES:
            self.issue(
                "info", key,
                f"Non-standard VAT rate detected ({_fmt(rate)}%). Standard is "
                f"{rules.VAT_RATE_STANDARD}% or {rules.VAT_RATE_EXEMPT}% for exempt items",
                "vat",
                original_value=raw, fixed_value=raw,
            )

    def check_line_items(self) -> None:
        key = next((alias for alias in ALIASES["line_items"] if not is_blank(self.record.get(alias))), None)
        if key is None:
            self.issue(
                "error", ALIASES["line_items"][0], "Invoice must contain line items", "mandatory",
                original_value=rules.MISSING, fixed_value=rules.REQUIRED,
            )
            return

        items = collapse_repeated_child(self.record[key])
        if items is not self.record[key]:
            self.fixed[key] = collapse_repeated_child(self.fixed[key])

        if not isinstance(items, list):
            self.issue(
                "error", key, "Line items must be a list", "schema",
                original_value=type(items).__name__, fixed_value=rules.REQUIRED,
            )
            return
        if not items:
            self.issue(
                "error", key, "Invoice must contain at least one line item", "mandatory",
                original_value="empty list", fixed_value=rules.REQUIRED,
            )
            return

        fixed_items = self.fixed[key]
        for line_no, line in enumerate(items, start=1):
            fixed_line = fixed_items[line_no - 1]
            self.check_line(
                line if is_mapping(line) else {"value": line},
                fixed_line if is_mapping(fixed_line) else None,
                line_no,
            )

    def check_line(self, line: Dict[str, Any], fixed_line: Optional[Dict[str, Any]], line_no: int) -> None:
        qty_key = present_key(line, ALIASES["quantity"]) or ALIASES["quantity"][0]
        price_key = present_key(line, ALIASES["unit_price"]) or ALIASES["unit_price"][0]
        total_key = present_key(line, ALIASES["line_total"]) or ALIASES["line_total"][0]

        qty = parse_number(extract_primitive(line.get(qty_key)))
        price = parse_number(extract_primitive(line.get(price_key)))

        if qty is not None and qty <= 0:
            self.issue(
                "error", qty_key, "Quantity must be greater than zero", "amount", line=line_no,
                original_value=qty, fixed_value=rules.MANUAL_REVIEW,
            )
        if price is not None and price < 0:
            self.issue(
                "error", price_key, "Unit price cannot be negative", "amount", line=line_no,
                original_value=price, fixed_value=rules.MANUAL_REVIEW,
            )
        if price is not None and price == 0:
            self.issue(
                "warning", price_key, "Unit price is zero. Verify this is correct for free/complimentary items",
                "amount", line=line_no,
                original_value=price, fixed_value=price, confidence="medium",
            )

        if qty is not None and price is not None and qty > 0 and price >= 0:
            expected = round2(qty * price)
            current = parse_number(extract_primitive(line.get(total_key)))
            if _differs(current, expected) and fixed_line is not None:
                fixed_line[total_key] = expected
                self.issue(
                    "warning", total_key, f"Line total recalculated: {_fmt(qty)} x {_fmt(price)} = {_fmt(expected)}",
                    "amount", line=line_no,
                    original_value=current, fixed_value=expected, auto_fixed=True,
                )

    def check_totals(self) -> None:
        keys = {
            name: present_key(self.record, ALIASES[name]) or ALIASES[name][0]
            for name in ("taxable_amount", "vat_amount", "grand_total")
        }
        values = {name: parse_number(extract_primitive(self.record.get(key))) for name, key in keys.items()}
        taxable = values["taxable_amount"]

        labels = {
            "taxable_amount": "Taxable amount",
            "vat_amount": "VAT amount",
            "grand_total": "Grand total",
        }
        for name, value in values.items():
            if value is not None and value < 0:
                self.issue(
                    "error", keys[name], f"{labels[name]} cannot be negative", "amount",
                    original_value=value, fixed_value=rules.MANUAL_REVIEW,
                )

        if taxable is not None and taxable == 0:
            self.issue(
                "warning", keys["taxable_amount"],
                "Taxable amount is zero. Verify this is correct for zero-rated transactions", "amount",
                original_value=taxable, fixed_value=taxable, confidence="medium",
            )

        if taxable is None or not taxable >= 0:
            return

        rate_key = present_key(self.fixed, ALIASES["vat_rate"]) or ALIASES["vat_rate"][0]
        rate = parse_number(extract_primitive(self.fixed.get(rate_key)))
        if rate is None:
            rate = rules.VAT_RATE_STANDARD

        vat = round2(taxable * rate / 100)
        grand_total = round2(taxable + vat)

        if _differs(values["vat_amount"], vat):
            self.fixed[keys["vat_amount"]] = vat
            self.issue(
                "warning", keys["vat_amount"], f"VAT amount recalculated: {_fmt(taxable)} x {_fmt(rate)}% = {_fmt(vat)}",
                "amount",
                original_value=values["vat_amount"], fixed_value=vat, auto_fixed=True,
            )
        if _differs(values["grand_total"], grand_total):
            self.fixed[keys["grand_total"]] = grand_total
            self.issue(
                "warning", keys["grand_total"],
                f"Grand total recalculated: {_fmt(taxable)} + {_fmt(vat)} = {_fmt(grand_total)}", "amount",
                original_value=values["grand_total"], fixed_value=grand_total, auto_fixed=True,
            )

    def check_schema(self) -> None:
        missing = [
            name for name in rules.SCHEMA_REQUIRED_FIELDS
            if present_key(self.record, mandatory_candidates(name)) is None
        ]
        if missing:
            self.issue(
                "error", "Schema Validation", f"Missing required fields: {', '.join(missing)}", "schema",
                original_value="incomplete structure", fixed_value=rules.MANUAL_REVIEW,
            )


def validate(decoded: Any, context: Optional[ValidationContext] = None) -> ValidationResult:
    """
    Validate a decoded payload and build its corrected copy.

    ``context`` carries the duplicate invoice-number table; a fresh one is
    created when the caller does not pass one, so independent calls never see
    each other's invoice numbers. Never raises for bad field values.
    """
    if context is None:
        context = ValidationContext()

    fixed = copy.deepcopy(decoded)
    records = decoded if isinstance(decoded, list) else [decoded]
    fixed_records = fixed if isinstance(fixed, list) else [fixed]

    issues: List[ValidationIssue] = []
    for index, (record, fixed_record) in enumerate(zip(records, fixed_records), start=1):
        if not is_mapping(record):
            record, fixed_record = {"value": record}, {"value": fixed_record}

        # {"Invoice": {...}} wrappers: rules see the inner mapping, writes land inside the wrapper.
        wrapper = singleton_wrapper_key(record)
        if wrapper is not None:
            record = record[wrapper]
            fixed_record = fixed_record[wrapper]

        record_issues = _RecordValidator(record, fixed_record, index, context).run()
        logger.debug("record %d: %d issue(s)", index, len(record_issues))
        issues.extend(record_issues)

    errors = sum(1 for issue in issues if issue.severity == "error")
    logger.info("validated %d record(s): %d issue(s), %d error(s)", len(records), len(issues), errors)

    return ValidationResult(
        is_valid=errors == 0,
        issues=issues,
        original_data=decoded,
        fixed_data=fixed,
    )
