import json

import pytest

from invoice_validator.decoders import decode, decode_csv, decode_json, decode_xml, detect_kind, repair_json
from invoice_validator.errors import DecodeError, FormatError

XML_INVOICE = """<?xml version="1.0" encoding="UTF-8"?>
<Invoice>
  <InvoiceNumber>INV-XML-001</InvoiceNumber>
  <TPIN>987654321</TPIN>
  <InvoiceDate>2025-03-05</InvoiceDate>
  <Currency>gbp</Currency>
  <LineItems>
    <LineItem>
      <Quantity>1</Quantity>
      <UnitPrice>100</UnitPrice>
      <LineTotal>100</LineTotal>
    </LineItem>
  </LineItems>
  <TaxableAmount>100</TaxableAmount>
  <VATAmount>16</VATAmount>
  <GrandTotal>116</GrandTotal>
</Invoice>
"""


def test_xml_root_is_unwrapped_and_text_nodes_collapse():
    data = decode_xml(XML_INVOICE)
    assert data["InvoiceNumber"] == "INV-XML-001"
    assert data["TPIN"] == "987654321"
    assert data["LineItems"] == {"LineItem": {"Quantity": "1", "UnitPrice": "100", "LineTotal": "100"}}


def test_xml_repeated_siblings_become_a_list():
    data = decode_xml(
        "<Invoice><LineItems>"
        "<LineItem><Quantity>1</Quantity></LineItem>"
        "<LineItem><Quantity>2</Quantity></LineItem>"
        "</LineItems></Invoice>"
    )
    assert data["LineItems"]["LineItem"] == [{"Quantity": "1"}, {"Quantity": "2"}]


def test_xml_attributes_are_kept():
    data = decode_xml('<Invoice version="2"><Amount currency="ZMW">10</Amount><Note/></Invoice>')
    assert data["@attributes"] == {"version": "2"}
    assert data["Amount"] == {"@attributes": {"currency": "ZMW"}, "#text": "10"}
    assert data["Note"] == ""


def test_xml_namespaces_are_dropped():
    data = decode_xml('<inv:Invoice xmlns:inv="urn:example"><inv:TPIN>1234567890</inv:TPIN></inv:Invoice>')
    assert data == {"TPIN": "1234567890"}


def test_xml_batch_document_decodes_to_records():
    data = decode_xml(
        "<Invoices>"
        "<Invoice><InvoiceNumber>A</InvoiceNumber></Invoice>"
        "<Invoice><InvoiceNumber>B</InvoiceNumber></Invoice>"
        "</Invoices>"
    )
    assert data == [{"InvoiceNumber": "A"}, {"InvoiceNumber": "B"}]


def test_xml_parse_error():
    with pytest.raises(FormatError) as exc:
        decode_xml("<Invoice><TPIN>1</Invoice>")
    assert "Invalid XML format" in str(exc.value)
    assert exc.value.hints


def test_csv_line_item_rows_become_one_invoice():
    data = decode_csv("Quantity,UnitPrice,LineTotal\n1,-10,-10\n2,5.5,11\n")
    assert data == {
        "LineItems": [
            {"Quantity": 1, "UnitPrice": -10, "LineTotal": -10},
            {"Quantity": 2, "UnitPrice": 5.5, "LineTotal": 11},
        ]
    }


def test_csv_lowercase_line_item_keys_are_recognised():
    data = decode_csv("description,quantity,unitPrice\nPens,3,2\n")
    assert data == {"LineItems": [{"description": "Pens", "quantity": 3, "unitPrice": 2}]}


def test_csv_invoice_rows_stay_separate_records():
    data = decode_csv(
        "TPIN,InvoiceNumber,GrandTotal,Paid,Notes\n"
        "0123456789,INV-1,116.00,true,\n"
        "1234567890,INV-2,58,false,rush\n"
    )
    assert data == [
        {"TPIN": "0123456789", "InvoiceNumber": "INV-1", "GrandTotal": 116.0, "Paid": True, "Notes": None},
        {"TPIN": 1234567890, "InvoiceNumber": "INV-2", "GrandTotal": 58, "Paid": False, "Notes": "rush"},
    ]


def test_csv_semicolon_delimiter_is_sniffed():
    data = decode_csv("InvoiceNumber;GrandTotal\nINV-1;116\nINV-2;58\n")
    assert data == [
        {"InvoiceNumber": "INV-1", "GrandTotal": 116},
        {"InvoiceNumber": "INV-2", "GrandTotal": 58},
    ]


def test_csv_missing_cell_decodes_to_none():
    data = decode_csv("Quantity,UnitPrice,LineTotal\n1,10,10\n,5,5\n")
    assert data["LineItems"][1] == {"Quantity": None, "UnitPrice": 5, "LineTotal": 5}


def test_json_is_parsed_directly():
    payload = {"InvoiceNumber": "INV-1", "LineItems": [{"Quantity": 1}]}
    assert decode_json(json.dumps(payload)) == payload


def test_json_repair_pass():
    text = "{InvoiceNumber: 'INV-1', // hand edited\n  /* total */ GrandTotal: 116,\n  Url: 'http://example.com',}"
    assert decode_json(text) == {"InvoiceNumber": "INV-1", "GrandTotal": 116, "Url": "http://example.com"}


def test_repair_json_strips_trailing_commas_in_arrays():
    assert json.loads(repair_json('{"a": [1, 2, ],}')) == {"a": [1, 2]}


def test_json_unrecoverable_raises_with_hints():
    with pytest.raises(FormatError) as exc:
        decode_json("{not json at all")
    message = str(exc.value)
    assert message.startswith("Invalid JSON format")
    assert "double quotes" in message
    assert exc.value.diagnostic


def test_decode_dispatches_on_kind_and_accepts_bytes():
    raw = '\ufeff{"InvoiceNumber": "INV-1"}'.encode("utf-8")
    assert decode(raw, "JSON") == {"InvoiceNumber": "INV-1"}
    assert decode("Quantity\n1\n", "csv") == {"LineItems": [{"Quantity": 1}]}


def test_decode_rejects_unknown_kind():
    with pytest.raises(DecodeError):
        decode(b"%PDF-1.7", "pdf")


def test_detect_kind():
    assert detect_kind("Invoice.JSON") == "json"
    assert detect_kind("batch/march.csv") == "csv"
    with pytest.raises(FormatError):
        detect_kind("scan.pdf")
