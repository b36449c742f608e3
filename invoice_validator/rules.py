"""
Smart Invoice rule set.

Every constant the engine checks against lives here so the rule set can be
read (and changed) in one place.
"""

TPIN_LENGTH = 10
TPIN_SENTINEL = "0" * TPIN_LENGTH

VAT_RATE_STANDARD = 16
VAT_RATE_EXEMPT = 0
VALID_VAT_RATES = (VAT_RATE_EXEMPT, VAT_RATE_STANDARD)

CURRENCY_CODE = "ZMW"
ACCEPTED_CURRENCIES = ("ZMW", "ZK")

MIN_YEAR = 2000
CURRENCY_DECIMAL_PLACES = 2
AMOUNT_TOLERANCE = 0.01

MANUAL_REVIEW = "MANUAL_REVIEW_REQUIRED"
REQUIRED = "REQUIRED"
MISSING = "missing"

# First present alias wins; fixes are written back under that same key.
FIELD_ALIASES = {
    "tpin": ("TPIN", "tpin", "TaxpayerTIN"),
    "invoice_number": ("InvoiceNumber", "invoiceNumber", "InvoiceNo"),
    "currency": ("Currency", "currency", "CurrencyCode"),
    "vat_rate": ("VATRate", "vatRate"),
    "line_items": ("LineItems", "lineItems"),
    "taxable_amount": ("TaxableAmount", "taxableAmount"),
    "vat_amount": ("VATAmount", "vatAmount"),
    "grand_total": ("GrandTotal", "grandTotal"),
    "quantity": ("Quantity", "quantity"),
    "unit_price": ("UnitPrice", "unitPrice"),
    "line_total": ("LineTotal", "lineTotal"),
}

DATE_FIELDS = ("Date", "date", "InvoiceDate", "TransactionDate")

MANDATORY_INVOICE_FIELDS = (
    "TPIN",
    "InvoiceDate",
    "InvoiceNumber",
    "TaxableAmount",
    "VATAmount",
    "GrandTotal",
)

SCHEMA_REQUIRED_FIELDS = ("TPIN", "InvoiceNumber", "InvoiceDate")

# Mandatory names mapped onto the alias groups tried after their spelling variants.
MANDATORY_ALIAS_GROUPS = {
    "TPIN": "tpin",
    "InvoiceNumber": "invoice_number",
    "TaxableAmount": "taxable_amount",
    "VATAmount": "vat_amount",
    "GrandTotal": "grand_total",
}

# Keys whose presence in CSV rows marks the file as one invoice's line items.
LINE_ITEM_KEYS = FIELD_ALIASES["quantity"] + FIELD_ALIASES["unit_price"] + FIELD_ALIASES["line_total"]

# Invoice-level columns of a line-item CSV; read once from the first row.
INVOICE_LEVEL_KEYS = (
    FIELD_ALIASES["tpin"]
    + FIELD_ALIASES["invoice_number"]
    + FIELD_ALIASES["currency"]
    + FIELD_ALIASES["vat_rate"]
    + FIELD_ALIASES["taxable_amount"]
    + FIELD_ALIASES["vat_amount"]
    + FIELD_ALIASES["grand_total"]
    + DATE_FIELDS
)

SUPPORTED_KINDS = ("xml", "csv", "json")

# CSV decoding
CSV_DELIMITERS = [",", ";", "\t", "|"]
CSV_EXTRA_KEY = "_extra"

# XML encoding
XML_ROOT = "Invoice"
XML_BATCH_ROOT = "Invoices"
XML_LINE_ITEM = "LineItem"
XML_ATTRIBUTES_KEY = "@attributes"
XML_TEXT_KEY = "#text"
