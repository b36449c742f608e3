"""
Format encoders: canonical record(s) -> XML / CSV / JSON text.

Encoders accept any tree the engine can return: a record, a list of records
or a bare scalar.
"""

from __future__ import annotations

import csv
import io
import json
import re
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional

from . import rules
from .errors import FormatError
from .tree import is_mapping, present_key

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'
XML_NAME_RE = re.compile(r"^[A-Za-z_][\w.\-]*$")


def _scalar_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _xml_name(key: Any) -> str:
    name = str(key)
    if XML_NAME_RE.match(name):
        return name
    name = re.sub(r"[^\w.\-]", "_", name)
    if not name or not re.match(r"[A-Za-z_]", name):
        name = "_" + name
    return name


def _fill_element(element: ET.Element, data: Any) -> None:
    if not is_mapping(data):
        if isinstance(data, list):
            element.text = json.dumps(data, ensure_ascii=False, default=str)
        else:
            element.text = _scalar_text(data)
        return

    for key, value in data.items():
        if key == rules.XML_ATTRIBUTES_KEY:
            if is_mapping(value):
                for attr, attr_value in value.items():
                    element.set(_xml_name(attr), _scalar_text(attr_value))
            continue
        if key == rules.XML_TEXT_KEY:
            element.text = _scalar_text(value)
            continue
        if key in rules.FIELD_ALIASES["line_items"] and isinstance(value, list) and all(map(is_mapping, value)):
            container = ET.SubElement(element, _xml_name(key))
            for item in value:
                _fill_element(ET.SubElement(container, rules.XML_LINE_ITEM), item)
            continue
        # Lists repeat the tag, one sibling per item.
        for item in value if isinstance(value, list) else [value]:
            _fill_element(ET.SubElement(element, _xml_name(key)), item)


def encode_xml(data: Any) -> str:
    if isinstance(data, list):
        root = ET.Element(rules.XML_BATCH_ROOT)
        for record in data:
            _fill_element(ET.SubElement(root, rules.XML_ROOT), record)
    else:
        root = ET.Element(rules.XML_ROOT)
        _fill_element(root, data)

    ET.indent(root)
    return XML_DECLARATION + ET.tostring(root, encoding="unicode") + "\n"


def _csv_cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return value


def _line_item_rows(record: Dict[str, Any]) -> Optional[List[Dict[str, Any]]]:
    """One row per line, line columns first, invoice-level values repeated on each."""
    key = present_key(record, rules.FIELD_ALIASES["line_items"])
    items = record.get(key) if key is not None else None
    if not isinstance(items, list) or not items or not all(is_mapping(item) for item in items):
        return None
    header = {k: v for k, v in record.items() if k != key}
    return [{**item, **header} for item in items]


def encode_csv(data: Any) -> str:
    records = data if isinstance(data, list) else [data]
    rows: List[Dict[str, Any]] = [record if is_mapping(record) else {"value": record} for record in records]

    # CSV holds one invoice's line items as rows; a batch keeps them as JSON cells.
    if len(rows) == 1:
        rows = _line_item_rows(rows[0]) or rows

    columns: List[str] = []
    for row in rows:
        for key in row:
            if key not in columns:
                columns.append(key)

    outp = io.StringIO(newline="")
    writer = csv.DictWriter(outp, fieldnames=columns, lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({key: _csv_cell(row.get(key)) for key in columns})
    return outp.getvalue()


def encode_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str) + "\n"


ENCODERS = {
    "xml": encode_xml,
    "csv": encode_csv,
    "json": encode_json,
}


def encode(data: Any, kind: str) -> str:
    encoder = ENCODERS.get((kind or "").lower())
    if encoder is None:
        raise FormatError("Unsupported output format", hints=["Choose xml, csv or json"], diagnostic=repr(kind))
    return encoder(data)
