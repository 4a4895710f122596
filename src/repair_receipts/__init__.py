"""
Repair Receipts

Receipt generation and synchronization for repair shops: numbering,
printable documents, a live ordered receipt list and customer messaging.
"""

from repair_receipts.exceptions import (
    ReceiptError,
    ReceiptErrorCategory,
    ValidationError,
    StoreWriteError,
    StoreSubscriptionError,
    ExternalServiceError,
    DocumentUnavailableError,
    ConfigError,
)

# Clients
from repair_receipts.client import (
    CancellationToken,
    HttpAuditEntry,
    HttpClient,
    InMemoryCollection,
    RemoteCollection,
    RemoteDocument,
    SERVER_TIMESTAMP,
    TextServiceClient,
)

# Configuration
from repair_receipts.config import (
    ReceiptConfig,
    ShopProfile,
    TextServiceConfig,
    StoreConfig,
    NumberingMode,
    PageSize,
    ConfigLoader,
    ConfigValidator,
    ConfigDefaults,
)

# Models
from repair_receipts.models import (
    Certainty,
    CostEstimate,
    DeviceCategory,
    Receipt,
    ReceiptDraft,
    ReceiptStatus,
)

# Services
from repair_receipts.services import (
    NotificationCenter,
    ReceiptDocument,
    ReceiptDocumentRenderer,
    ReceiptStore,
    ReceiptWorkflow,
    SubmissionResult,
    WorkflowState,
)

# Utilities
from repair_receipts.utils import (
    amount_to_words,
    compose_message_link,
    format_currency,
    next_receipt_number,
    sanitize_phone_for_messaging,
)

__version__ = "0.1.0"

__all__ = [
    # Exceptions
    "ReceiptError",
    "ReceiptErrorCategory",
    "ValidationError",
    "StoreWriteError",
    "StoreSubscriptionError",
    "ExternalServiceError",
    "DocumentUnavailableError",
    "ConfigError",
    # Clients
    "CancellationToken",
    "HttpAuditEntry",
    "HttpClient",
    "InMemoryCollection",
    "RemoteCollection",
    "RemoteDocument",
    "SERVER_TIMESTAMP",
    "TextServiceClient",
    # Configuration
    "ReceiptConfig",
    "ShopProfile",
    "TextServiceConfig",
    "StoreConfig",
    "NumberingMode",
    "PageSize",
    "ConfigLoader",
    "ConfigValidator",
    "ConfigDefaults",
    # Models
    "Certainty",
    "CostEstimate",
    "DeviceCategory",
    "Receipt",
    "ReceiptDraft",
    "ReceiptStatus",
    # Services
    "NotificationCenter",
    "ReceiptDocument",
    "ReceiptDocumentRenderer",
    "ReceiptStore",
    "ReceiptWorkflow",
    "SubmissionResult",
    "WorkflowState",
    # Utilities
    "amount_to_words",
    "compose_message_link",
    "format_currency",
    "next_receipt_number",
    "sanitize_phone_for_messaging",
]
