"""
External text service client

Wraps a generateContent-style text endpoint with three operations used
while writing receipts. Every operation resolves to a value: when the
service is unconfigured, rate limited past its attempts, or fails, a
deterministic local fallback is returned instead of an error.
"""

import json
import logging
from decimal import Decimal
from typing import Any, Callable, Dict, Optional, Union

from repair_receipts.client.http_client import CancellationToken, HttpClient
from repair_receipts.config.receipt_config import TextServiceConfig
from repair_receipts.exceptions import ExternalServiceError
from repair_receipts.models.estimate import Certainty, CostEstimate
from repair_receipts.models.receipt import DeviceCategory
from repair_receipts.utils.formatting import format_currency

logger = logging.getLogger(__name__)

DEFAULT_NOTES = "No additional notes."
UNCONFIGURED_ESTIMATE_NOTES = "Estimate unavailable: text service not configured."

ESTIMATE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "costEstimate": {"type": "INTEGER"},
        "certainty": {"type": "STRING", "enum": [c.value for c in Certainty]},
        "notes": {"type": "STRING"},
    },
    "required": ["costEstimate", "certainty", "notes"],
}

Category = Union[DeviceCategory, str]


def _category_label(category: Category) -> str:
    return category.value if isinstance(category, DeviceCategory) else str(category)


def _strip_code_fence(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.strip("`")
        if stripped.lower().startswith("json"):
            stripped = stripped[4:]
    return stripped.strip()


class TextServiceClient:
    """
    Client for issue polishing, cost estimation and follow-up drafting

    Example:
        >>> client = TextServiceClient(TextServiceConfig())
        >>> client.expand_issue_text("dead")
        'dead'
    """

    def __init__(
        self,
        config: TextServiceConfig,
        http_client: Optional[HttpClient] = None,
        notify: Optional[Callable[[str], None]] = None,
    ) -> None:
        """
        Args:
            config: Text service configuration
            http_client: Transport; built from config when omitted
            notify: Receives user-facing warning messages
        """
        self.config = config
        self._http = http_client or HttpClient(config)
        self._notify = notify

    @property
    def configured(self) -> bool:
        return self.config.configured

    def expand_issue_text(
        self,
        short_text: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        """Turn a terse fault description into a polished sentence"""
        if not self.configured:
            self._warn_unconfigured("expand_issue_text")
            return short_text
        if not short_text.strip():
            return short_text

        prompt = (
            "Rewrite this terse repair-shop fault note as one clear, professional "
            "sentence for a customer receipt. Reply with the sentence only.\n"
            f"Note: {short_text}"
        )
        try:
            return self._generate(prompt, cancel_token=cancel_token)
        except ExternalServiceError as e:
            self._report_failure("expand_issue_text", e)
            return f"Customer reported: {short_text}"

    def estimate_cost(
        self,
        device_category: Category,
        issue_text: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> CostEstimate:
        """Estimate the repair cost of a device category and issue"""
        category = _category_label(device_category)
        if not self.configured:
            self._warn_unconfigured("estimate_cost")
            return CostEstimate(
                cost_estimate=0,
                certainty=Certainty.LOW,
                notes=UNCONFIGURED_ESTIMATE_NOTES,
            )

        prompt = (
            f"Estimate the repair cost in Indian rupees for a {category} with this "
            f"issue: {issue_text}. Reply as JSON with costEstimate (integer), "
            "certainty (High, Medium or Low) and notes."
        )
        try:
            text = self._generate(prompt, schema=ESTIMATE_SCHEMA, cancel_token=cancel_token)
        except ExternalServiceError as e:
            self._report_failure("estimate_cost", e)
            return CostEstimate(
                cost_estimate=0,
                certainty=Certainty.LOW,
                notes=(
                    f"Automatic estimate failed for {category}: {issue_text}. "
                    "Inspect manually."
                ),
            )
        return self._parse_estimate(text)

    def draft_follow_up(
        self,
        customer_name: str,
        device_category: Category,
        amount: Union[Decimal, float, int],
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        """Draft a short pickup message for the customer"""
        category = _category_label(device_category)
        formatted = format_currency(amount)
        if not self.configured:
            self._warn_unconfigured("draft_follow_up")
            return (
                f"Dear {customer_name}, your {category} repair is complete. "
                f"Amount due: {formatted}. Thank you for your business."
            )

        prompt = (
            f"Write a short, friendly message to {customer_name} saying their "
            f"{category} repair is complete and the amount due is {formatted}. "
            "Keep it under 60 words. Reply with the message only."
        )
        try:
            return self._generate(prompt, cancel_token=cancel_token)
        except ExternalServiceError as e:
            self._report_failure("draft_follow_up", e)
            return f"Hello {customer_name}, your {category} is ready for pickup. Total: {formatted}."

    def _generate(
        self,
        prompt: str,
        schema: Optional[Dict[str, Any]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        """Send one prompt and return the reply text"""
        body: Dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
        if schema is not None:
            body["generationConfig"] = {
                "responseMimeType": "application/json",
                "responseSchema": schema,
            }

        response = self._http.post(
            f"/models/{self.config.model}:generateContent",
            body,
            cancel_token=cancel_token,
        )
        text = self._extract_text(response.data)
        if not text:
            raise ExternalServiceError("Text service returned no text", code="EXT05")
        return text

    def _extract_text(self, data: Any) -> str:
        """Pull the reply text out of a response body, '' when absent"""
        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            return ""
        if not isinstance(parts, list):
            return ""
        texts = [p.get("text", "") for p in parts if isinstance(p, dict)]
        return "".join(t for t in texts if isinstance(t, str)).strip()

    def _parse_estimate(self, text: str) -> CostEstimate:
        """Parse an estimate reply, falling back field by field"""
        try:
            data = json.loads(_strip_code_fence(text))
        except ValueError:
            logger.warning("Cost estimate reply is not valid JSON; using defaults")
            data = {}
        if not isinstance(data, dict):
            data = {}

        try:
            cost = max(int(float(data.get("costEstimate", 0))), 0)
        except (TypeError, ValueError, OverflowError):
            cost = 0

        certainty = Certainty.LOW
        raw_certainty = data.get("certainty")
        if isinstance(raw_certainty, str):
            for option in Certainty:
                if option.value.lower() == raw_certainty.strip().lower():
                    certainty = option
                    break

        notes = data.get("notes")
        if not isinstance(notes, str) or not notes.strip():
            notes = DEFAULT_NOTES

        return CostEstimate(cost_estimate=cost, certainty=certainty, notes=notes.strip())

    def _warn_unconfigured(self, operation: str) -> None:
        logger.warning(f"Text service not configured; {operation} using local fallback")
        if self._notify:
            self._notify("AI assistance is not configured; using default text.")

    def _report_failure(self, operation: str, error: ExternalServiceError) -> None:
        if error.has_code("EXT_CANCELLED"):
            logger.info(f"{operation} cancelled by caller; using fallback")
            return
        logger.warning(f"{operation} failed, using fallback: {error.get_description()}")
        if self._notify:
            self._notify("AI assistance is unavailable right now; using default text.")

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "TextServiceClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
