"""
Field normalizers and byte decoding.

Responsibilities:
- bytes -> text (encoding detection + newline normalization)
- TPIN normalization to the 10-digit form
- date normalization to ISO YYYY-MM-DD
- lenient number parsing and 2-decimal rounding

Every normalizer is total: bad input degrades to a low-confidence value
instead of raising.
"""

from __future__ import annotations

import json
import re
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, NamedTuple, Optional, Tuple, Union

from charset_normalizer import from_bytes

from . import rules

Number = Union[int, float]


class Normalized(NamedTuple):
    normalized: str
    confidence: str  # "high" | "medium" | "low"


def decode_bytes(raw: bytes) -> Tuple[str, Dict[str, Any]]:
    """
    Decode uploaded bytes to text.

    Rules:
    - Detect encoding best-effort via charset-normalizer.
    - UTF-8 input with a BOM is decoded as utf-8-sig so the BOM never leaks into keys.
    - If decode fails, fall back to UTF-8, then to replacement characters, and report it.
    - Newlines are normalized to LF.
    """
    detected = None
    match = from_bytes(raw).best()
    if match is not None:
        detected = match.encoding

    decode_used = detected or "utf-8"
    if raw.startswith(b"\xef\xbb\xbf") and (decode_used.lower().replace("-", "_") in ("utf_8", "utf8")):
        decode_used = "utf-8-sig"

    decode_fallback = False
    try:
        text = raw.decode(decode_used)
    except (UnicodeDecodeError, LookupError):
        try:
            text = raw.decode("utf-8-sig")
            decode_used = "utf-8-sig"
        except UnicodeDecodeError:
            text = raw.decode("utf-8", errors="replace")
            decode_used = "utf-8"
        decode_fallback = True

    newlines_before = {
        "crlf": text.count("\r\n"),
        "cr": text.count("\r") - text.count("\r\n"),
        "lf": text.count("\n"),
    }
    text = text.replace("\r\n", "\n").replace("\r", "\n")

    report = {
        "encoding": {
            "detected": detected,
            "decode_used": decode_used,
            "decode_fallback": decode_fallback,
        },
        "newlines": {
            "policy": "lf",
            "before": newlines_before,
            "changed": (newlines_before["crlf"] > 0) or (newlines_before["cr"] > 0),
        },
    }
    return text, report


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (str, int, float)):
        return str(value)
    return json.dumps(value, default=str)


def normalize_tpin(value: Any) -> Normalized:
    digits = re.sub(r"[^0-9]", "", _as_text(value))

    if len(digits) == rules.TPIN_LENGTH:
        return Normalized(digits, "high")
    if len(digits) == rules.TPIN_LENGTH - 1:
        return Normalized("0" + digits, "medium")
    if len(digits) > rules.TPIN_LENGTH:
        return Normalized(digits[: rules.TPIN_LENGTH], "medium")
    if len(digits) >= 6:
        return Normalized(digits.ljust(rules.TPIN_LENGTH, "0"), "low")
    return Normalized(rules.TPIN_SENTINEL, "low")


# (pattern, year-first)
DATE_PATTERNS = [
    (re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$"), True),
    (re.compile(r"^(\d{4})/(\d{1,2})/(\d{1,2})$"), True),
    (re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$"), False),
    (re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$"), False),
    (re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$"), False),
]
TIMESTAMP_RE = re.compile(r"^\d{10,13}$")


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def normalize_date(value: Any, today: Optional[date] = None) -> Normalized:
    """
    Normalize a date to ISO YYYY-MM-DD.

    Non-ISO patterns are always read day-first, so a US-style MM/DD/YYYY
    value is misread whenever its day is 12 or lower.
    """
    today = today or _utc_today()

    if isinstance(value, datetime):
        return Normalized(value.strftime("%Y-%m-%d"), "high")
    if isinstance(value, date):
        return Normalized(value.isoformat(), "high")

    text = _as_text(value).strip()

    for pattern, year_first in DATE_PATTERNS:
        m = pattern.match(text)
        if not m:
            continue
        if year_first:
            year, month, day = m.groups()
        else:
            day, month, year = m.groups()
        try:
            parsed = date(int(year), int(month), int(day))
        except ValueError:
            continue
        if parsed <= today and rules.MIN_YEAR <= parsed.year <= today.year + 1:
            return Normalized(parsed.isoformat(), "high")

    if TIMESTAMP_RE.match(text):
        stamp = int(text)
        seconds = stamp if len(text) == 10 else stamp / 1000
        try:
            parsed = datetime.fromtimestamp(seconds, tz=timezone.utc).date()
        except (OverflowError, OSError, ValueError):
            parsed = None
        if parsed is not None:
            return Normalized(parsed.isoformat(), "medium")

    return Normalized(today.isoformat(), "low")


NUMBER_CHARS_RE = re.compile(r"[^0-9.\-]")
NUMBER_PREFIX_RE = re.compile(r"^-?(\d+\.?\d*|\.\d+)")


def parse_number(value: Any) -> Optional[Number]:
    if isinstance(value, bool):
        value = _as_text(value)
    elif isinstance(value, (int, float)):
        return value
    if value is None:
        return None

    cleaned = NUMBER_CHARS_RE.sub("", _as_text(value))
    m = NUMBER_PREFIX_RE.match(cleaned)
    if not m:
        return None
    return float(m.group(0))


def round2(value: Number) -> float:
    """Round half away from zero to the currency precision."""
    exponent = Decimal(1).scaleb(-rules.CURRENCY_DECIMAL_PLACES)
    try:
        return float(Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP))
    except InvalidOperation:
        return float(value)
