"""Utilities module initialization"""

from repair_receipts.utils.formatting import (
    amount_to_words,
    compose_message_link,
    document_filename,
    format_currency,
    next_receipt_number,
    receipt_sequence,
    receipt_year,
    sanitize_phone_for_messaging,
)
from repair_receipts.utils.qrcode import QRCodeGenerator, QRMatrix

__all__ = [
    "amount_to_words",
    "compose_message_link",
    "document_filename",
    "format_currency",
    "next_receipt_number",
    "receipt_sequence",
    "receipt_year",
    "sanitize_phone_for_messaging",
    "QRCodeGenerator",
    "QRMatrix",
]
