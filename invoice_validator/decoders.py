"""
Format decoders: XML / CSV / JSON text -> canonical record(s).

A canonical record is a plain dict/list/scalar tree. Batches come back as a
list of records.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import re
import xml.etree.ElementTree as ET
from pathlib import PurePath
from typing import Any, Dict, List, Union

from . import rules
from .errors import FormatError
from .normalize import decode_bytes
from .tree import is_mapping

logger = logging.getLogger(__name__)

JSON_HINTS = [
    'Property names in double quotes (e.g. "InvoiceNumber")',
    "String values in double quotes",
    "No trailing commas",
    "A single top-level object or array",
]

XML_HINTS = [
    "Exactly one root element (e.g. <Invoice>)",
    "Every opening tag closed with a matching end tag",
    "Special characters escaped (&amp; &lt; &gt;)",
]


def detect_kind(filename: str) -> str:
    suffix = PurePath(filename).suffix.lower().lstrip(".")
    if suffix not in rules.SUPPORTED_KINDS:
        raise FormatError(
            "Unsupported file type",
            hints=["Upload XML, CSV or JSON files"],
            diagnostic=f"{filename!r}",
        )
    return suffix


def decode(raw: Union[bytes, str], kind: str) -> Any:
    kind = (kind or "").lower()
    if kind not in DECODERS:
        raise FormatError(
            "Unsupported file type",
            hints=["Upload XML, CSV or JSON files"],
            diagnostic=repr(kind),
        )
    text = decode_bytes(raw)[0] if isinstance(raw, bytes) else raw.lstrip("\ufeff")
    return DECODERS[kind](text)


# --- XML ---

def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if tag.startswith("{") else tag


def _element_to_node(element: ET.Element) -> Any:
    children = list(element)
    text = (element.text or "").strip()

    if not children and not element.attrib:
        return text

    node: Dict[str, Any] = {}
    if element.attrib:
        node[rules.XML_ATTRIBUTES_KEY] = {_local_name(k): v for k, v in element.attrib.items()}
    if not children:
        if text:
            node[rules.XML_TEXT_KEY] = text
        return node

    for child in children:
        name = _local_name(child.tag)
        value = _element_to_node(child)
        if name not in node:
            node[name] = value
        elif isinstance(node[name], list):
            node[name].append(value)
        else:
            node[name] = [node[name], value]
    return node


def decode_xml(text: str) -> Any:
    try:
        root = ET.fromstring(text.strip())
    except ET.ParseError as exc:
        raise FormatError("Invalid XML format", hints=XML_HINTS, diagnostic=str(exc)) from exc

    # The root element only wraps the invoice body.
    body = _element_to_node(root)

    # <Invoices><Invoice/><Invoice/></Invoices> is a batch.
    if is_mapping(body) and len(body) == 1:
        only = next(iter(body.values()))
        if isinstance(only, list) and only and all(is_mapping(item) for item in only):
            return only
    return body


# --- CSV ---

INT_RE = re.compile(r"^-?(0|[1-9]\d*)$")
FLOAT_RE = re.compile(r"^-?(0|[1-9]\d*)?\.\d+$|^-?(0|[1-9]\d*)\.$")


def _auto_type(cell: Any) -> Any:
    """Type a CSV cell where the reading is unambiguous."""
    if cell is None:
        return None
    if isinstance(cell, list):
        return [_auto_type(item) for item in cell]
    value = cell.strip()
    if value == "":
        return None
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    # Leading zeros are identifiers (TPINs), not numbers.
    if INT_RE.match(value):
        return int(value)
    if FLOAT_RE.match(value):
        return float(value)
    return cell


def _sniff_delimiter(sample: str) -> str:
    try:
        return csv.Sniffer().sniff(sample, delimiters=rules.CSV_DELIMITERS).delimiter
    except csv.Error:
        return ","


def decode_csv(text: str) -> Any:
    delimiter = _sniff_delimiter(text[:4096])

    try:
        reader = csv.DictReader(io.StringIO(text, newline=""), delimiter=delimiter, restkey=rules.CSV_EXTRA_KEY)
        rows: List[Dict[str, Any]] = []
        for i, row in enumerate(reader):
            if rules.CSV_EXTRA_KEY in row:
                logger.warning("CSV row %d has %d cell(s) beyond the header", i + 1, len(row[rules.CSV_EXTRA_KEY]))
            rows.append({key: _auto_type(value) for key, value in row.items()})
    except csv.Error as exc:
        raise FormatError("Invalid CSV format", hints=["A header row naming every column"], diagnostic=str(exc)) from exc

    # CSV has no nesting: line-item rows make up a single invoice.
    if rows and any(key in rows[0] for key in rules.LINE_ITEM_KEYS):
        return _line_item_invoice(rows)
    return rows


def _line_item_invoice(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    header_keys = [key for key in rows[0] if key in rules.INVOICE_LEVEL_KEYS]
    invoice: Dict[str, Any] = {
        "LineItems": [{key: value for key, value in row.items() if key not in header_keys} for row in rows],
    }
    for key in header_keys:
        invoice[key] = rows[0][key]
    return invoice


# --- JSON ---

def repair_json(text: str) -> str:
    """Best-effort fix-ups for hand-edited JSON."""
    fixed = text.strip()
    fixed = re.sub(r"/\*[\s\S]*?\*/", "", fixed)
    fixed = re.sub(r"(?<![:\"'])//.*", "", fixed)
    fixed = fixed.replace("'", '"')
    fixed = re.sub(r"([{,]\s*)([A-Za-z_$][A-Za-z0-9_$]*)\s*:", r'\1"\2":', fixed)
    fixed = re.sub(r",(\s*[}\]])", r"\1", fixed)
    fixed = re.sub(r'"\s*\n\s*"', '",\n"', fixed)
    fixed = fixed.replace("\r\n", "\n")
    return fixed


def decode_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        first_error = exc

    try:
        data = json.loads(repair_json(text))
    except json.JSONDecodeError:
        raise FormatError("Invalid JSON format", hints=JSON_HINTS, diagnostic=str(first_error)) from first_error

    logger.info("JSON syntax repaired after initial parse failure: %s", first_error)
    return data


DECODERS = {
    "xml": decode_xml,
    "csv": decode_csv,
    "json": decode_json,
}
