"""Services module initialization"""

from repair_receipts.services.document_layout import (
    ReceiptDocument,
    ReceiptDocumentRenderer,
)
from repair_receipts.services.notifications import (
    Notification,
    NotificationCenter,
    NotificationLevel,
)
from repair_receipts.services.receipt_store import ReceiptStore, normalize_timestamp
from repair_receipts.services.receipt_workflow import (
    ReceiptWorkflow,
    SubmissionResult,
    WorkflowState,
)

__all__ = [
    "ReceiptDocument",
    "ReceiptDocumentRenderer",
    "Notification",
    "NotificationCenter",
    "NotificationLevel",
    "ReceiptStore",
    "normalize_timestamp",
    "ReceiptWorkflow",
    "SubmissionResult",
    "WorkflowState",
]
