"""
Client module: external text service and remote collection access
"""

from repair_receipts.client.http_client import (
    CancellationToken,
    HttpAuditEntry,
    HttpClient,
    HttpRequestOptions,
    HttpResponse,
    Waiter,
)
from repair_receipts.client.memory_collection import InMemoryCollection
from repair_receipts.client.remote_collection import (
    SERVER_TIMESTAMP,
    RemoteCollection,
    RemoteDocument,
)
from repair_receipts.client.text_service import TextServiceClient

__all__ = [
    "CancellationToken",
    "HttpAuditEntry",
    "HttpClient",
    "HttpRequestOptions",
    "HttpResponse",
    "Waiter",
    "InMemoryCollection",
    "SERVER_TIMESTAMP",
    "RemoteCollection",
    "RemoteDocument",
    "TextServiceClient",
]
