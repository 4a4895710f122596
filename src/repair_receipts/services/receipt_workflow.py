"""
Receipt Workflow Controller

Drives one draft from entry to a persisted receipt:

    Draft -> Validating -> Submitting -> Formatting -> Persisted

Validation failures return to Draft; store failures during Submitting
end in Failed with the draft left untouched for a retry. A persisted
draft is replaced by a fresh one.
"""

import logging
import threading
import webbrowser
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from repair_receipts.client.http_client import CancellationToken
from repair_receipts.client.text_service import TextServiceClient
from repair_receipts.config.receipt_config import NumberingMode, ReceiptConfig
from repair_receipts.exceptions import (
    DocumentUnavailableError,
    StoreSubscriptionError,
    StoreWriteError,
    ValidationError,
)
from repair_receipts.models.estimate import CostEstimate
from repair_receipts.models.receipt import Receipt, ReceiptDraft
from repair_receipts.services.document_layout import ReceiptDocument, ReceiptDocumentRenderer
from repair_receipts.services.notifications import NotificationCenter
from repair_receipts.services.receipt_store import ReceiptStore
from repair_receipts.utils.formatting import (
    amount_to_words,
    compose_message_link,
    next_receipt_number,
)

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Receipt created successfully!"


class WorkflowState(str, Enum):
    """States of the receipt workflow"""
    DRAFT = "Draft"
    VALIDATING = "Validating"
    SUBMITTING = "Submitting"
    FORMATTING = "Formatting"
    PERSISTED = "Persisted"
    FAILED = "Failed"


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of a successful submission"""
    receipt: Receipt
    document: Optional[ReceiptDocument]
    message_link: Optional[str] = None


StateListener = Callable[[WorkflowState], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReceiptWorkflow:
    """
    Orchestrates receipt creation

    Example:
        >>> workflow = ReceiptWorkflow(store, renderer, config)
        >>> _ = workflow.update_draft(customer_name="Asha", phone="98765 43210",
        ...                           total_amount="1500")
        >>> result = workflow.submit(created_by="counter-1", send_message=True)
        >>> result.receipt.receipt_number
        'PFX-2024-0001'
    """

    def __init__(
        self,
        store: ReceiptStore,
        renderer: ReceiptDocumentRenderer,
        config: ReceiptConfig,
        text_client: Optional[TextServiceClient] = None,
        notifications: Optional[NotificationCenter] = None,
        link_opener: Optional[Callable[[str], Any]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """
        Args:
            store: Store adapter owning the live receipt list
            renderer: Document layout engine
            config: Resolved configuration
            text_client: Text service client; built from config when omitted
            notifications: Where user-facing messages go
            link_opener: Opens the messaging link in a new browsing context
            clock: Source of the current (aware) time, for the numbering year
        """
        self.store = store
        self.renderer = renderer
        self.config = config
        self.notifications = notifications or NotificationCenter(ttl=config.notification_ttl)
        self.text_client = text_client or TextServiceClient(
            config.text_service, notify=self.notifications.warning
        )
        self._link_opener = link_opener or webbrowser.open_new_tab
        self._clock = clock or _utc_now

        self._lock = threading.RLock()
        self._submit_lock = threading.Lock()
        self._state = WorkflowState.DRAFT
        self._draft = ReceiptDraft()
        self._token = CancellationToken()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._state_listeners: List[StateListener] = []

    @property
    def state(self) -> WorkflowState:
        with self._lock:
            return self._state

    @property
    def draft(self) -> ReceiptDraft:
        with self._lock:
            return self._draft.model_copy()

    def add_state_listener(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def _transition(self, state: WorkflowState) -> None:
        with self._lock:
            previous, self._state = self._state, state
        logger.info(f"Receipt workflow {previous.value} -> {state.value}")
        for listener in list(self._state_listeners):
            listener(state)

    def update_draft(self, **fields: Any) -> ReceiptDraft:
        """
        Change fields of the current draft

        Raises:
            ValidationError: If a value cannot be parsed (e.g. a non-numeric amount)
        """
        with self._lock:
            data = {**self._draft.model_dump(), **fields}
            try:
                self._draft = ReceiptDraft.model_validate(data)
            except PydanticValidationError as e:
                first = e.errors()[0]
                field = ".".join(str(part) for part in first["loc"])
                raise ValidationError(f"Invalid {field}: {first['msg']}", field=field) from e
            return self._draft.model_copy()

    def watch_receipts(self, on_change: Callable[[Tuple[Receipt, ...]], None]) -> Callable[[], None]:
        """Follow the live receipt list; read failures become error notifications"""
        return self.store.subscribe(on_change, on_error=self._notify_store_error)

    def _notify_store_error(self, error: StoreSubscriptionError) -> None:
        self.notifications.error(str(error))

    def reset(self) -> None:
        """Start over with an empty draft"""
        with self._lock:
            self._draft = ReceiptDraft()
        self._transition(WorkflowState.DRAFT)

    def validate(self, draft: ReceiptDraft) -> None:
        """
        Check the fields a receipt cannot be issued without

        Raises:
            ValidationError: On a blank name or phone, or a negative amount
        """
        if not draft.customer_name.strip():
            raise ValidationError("Customer name is required", field="customer_name")
        if not draft.phone.strip():
            raise ValidationError("Phone number is required", field="phone")
        if draft.total_amount < 0:
            raise ValidationError("Amount cannot be negative", field="total_amount")

    def submit(
        self,
        created_by: str,
        send_message: bool = False,
        polish_issue: bool = False,
    ) -> SubmissionResult:
        """
        Validate, number, persist and render the current draft

        Args:
            created_by: Identity of the staff member issuing the receipt
            send_message: Open a messaging link to the customer afterwards
            polish_issue: Rewrite the issue text with the text service first

        Raises:
            ValidationError: Draft invalid; state returns to Draft
            StoreWriteError: Persisting failed; state is Failed, draft kept
        """
        with self._submit_lock:
            draft = self.draft

            self._transition(WorkflowState.VALIDATING)
            try:
                self.validate(draft)
            except ValidationError as e:
                self._transition(WorkflowState.DRAFT)
                self.notifications.error(str(e))
                raise

            self._transition(WorkflowState.SUBMITTING)
            try:
                receipt = self._build_receipt(draft, created_by, send_message, polish_issue)
                key = self.store.append(receipt)
            except StoreWriteError as e:
                self._transition(WorkflowState.FAILED)
                self.notifications.error(f"Error: {e}")
                raise
            receipt = receipt.model_copy(update={"store_key": key})

            self._transition(WorkflowState.FORMATTING)
            document = self.renderer.render(receipt)
            if document is None:
                warning = DocumentUnavailableError(
                    f"Receipt {receipt.receipt_number} was saved, but its document "
                    "could not be generated."
                )
                self.notifications.warning(str(warning))

            message_link = None
            if send_message:
                message_link = compose_message_link(
                    receipt.phone,
                    receipt.customer_name,
                    receipt.receipt_number,
                    host=self.config.messaging_host,
                )
                self._open_link(message_link)

            self._transition(WorkflowState.PERSISTED)
            self.notifications.success(SUCCESS_MESSAGE)
            result = SubmissionResult(
                receipt=receipt,
                document=document,
                message_link=message_link,
            )
            self.reset()
            return result

    def submit_in_background(
        self,
        created_by: str,
        send_message: bool = False,
        polish_issue: bool = False,
    ) -> "Future[SubmissionResult]":
        """Run submit on the workflow's worker thread"""
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="receipt-workflow"
                )
            executor = self._executor
        return executor.submit(
            self.submit,
            created_by,
            send_message=send_message,
            polish_issue=polish_issue,
        )

    def _allocate_number(self, year: int) -> str:
        prefix = self.config.shop.receipt_prefix
        if self.config.store.numbering is NumberingMode.SNAPSHOT:
            # the snapshot may already be stale; accepted race
            return next_receipt_number(self.store.count, year, prefix)
        return self.store.allocate_receipt_number(
            year, prefix, floor=self.store.highest_sequence_for_year(year)
        )

    def _build_receipt(
        self,
        draft: ReceiptDraft,
        created_by: str,
        send_message: bool,
        polish_issue: bool,
    ) -> Receipt:
        now = self._clock()
        issue = draft.issue
        if polish_issue and issue.strip():
            issue = self.text_client.expand_issue_text(issue, cancel_token=self._current_token())

        # the numbering year is the shop's calendar year
        year = now.astimezone(self.config.shop.tzinfo).year
        return Receipt(
            receipt_number=self._allocate_number(year),
            customer_name=draft.customer_name,
            phone=draft.phone,
            address=draft.address,
            email=draft.email,
            device_category=draft.device_category,
            imei=draft.imei,
            serial_number=draft.serial_number,
            issue=issue,
            condition=draft.condition,
            total_amount=draft.total_amount,
            amount_in_words=amount_to_words(draft.total_amount),
            created_at=now,
            created_by=created_by,
            status=draft.status,
            message_sent=send_message,
            external_link=draft.external_link,
        )

    def _open_link(self, link: str) -> None:
        try:
            self._link_opener(link)
        except Exception as e:
            logger.warning(f"Messaging link could not be opened: {e}")
            self.notifications.warning("Could not open the messaging app.")

    def _current_token(self) -> CancellationToken:
        with self._lock:
            return self._token

    def polish_issue_text(self) -> str:
        """Replace the draft's issue with the text service's rewrite"""
        draft = self.draft
        polished = self.text_client.expand_issue_text(
            draft.issue, cancel_token=self._current_token()
        )
        self.update_draft(issue=polished)
        return polished

    def estimate_cost(self) -> CostEstimate:
        """Cost estimate for the draft's device and issue"""
        draft = self.draft
        return self.text_client.estimate_cost(
            draft.device_category, draft.issue, cancel_token=self._current_token()
        )

    def draft_follow_up(self, receipt: Receipt) -> str:
        """Pickup message for a persisted receipt"""
        return self.text_client.draft_follow_up(
            receipt.customer_name,
            receipt.device_category,
            receipt.total_amount,
            cancel_token=self._current_token(),
        )

    def cancel(self) -> None:
        """Abandon pending text service retries; later calls get a fresh token"""
        with self._lock:
            stale, self._token = self._token, CancellationToken()
        stale.cancel()
        logger.info("Pending text service retries cancelled")

    def close(self) -> None:
        self.cancel()
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)
        self.text_client.close()
