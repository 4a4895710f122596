"""Models module initialization"""

from repair_receipts.models.receipt import (
    DeviceCategory,
    Receipt,
    ReceiptDraft,
    ReceiptStatus,
)
from repair_receipts.models.estimate import Certainty, CostEstimate

__all__ = [
    "DeviceCategory",
    "Receipt",
    "ReceiptDraft",
    "ReceiptStatus",
    "Certainty",
    "CostEstimate",
]
