"""
Text Service Client Unit Tests
"""

import json
from decimal import Decimal

import pytest
import requests

from repair_receipts.client import CancellationToken, HttpClient, TextServiceClient
from repair_receipts.config import TextServiceConfig
from repair_receipts.models import Certainty, CostEstimate, DeviceCategory


class RecordingWaiter:
    def __init__(self) -> None:
        self.delays = []

    def __call__(self, delay: float, token: CancellationToken) -> bool:
        self.delays.append(delay)
        return token.cancelled


@pytest.fixture
def waiter() -> RecordingWaiter:
    return RecordingWaiter()


@pytest.fixture
def build_client(text_config, fake_session, waiter):
    """Factory for a configured client replaying the given responses"""

    def build(*responses):
        session = fake_session(list(responses))
        notices = []
        http = HttpClient(text_config, session=session, wait=waiter)
        client = TextServiceClient(text_config, http_client=http, notify=notices.append)
        return client, session, notices

    return build


class TestUnconfigured:
    """Tests for the local fallbacks without a credential"""

    @pytest.fixture
    def session(self, fake_session):
        return fake_session([])

    @pytest.fixture
    def notices(self) -> list:
        return []

    @pytest.fixture
    def client(self, session, notices) -> TextServiceClient:
        config = TextServiceConfig()
        return TextServiceClient(
            config,
            http_client=HttpClient(config, session=session),
            notify=notices.append,
        )

    def test_expand_returns_input(self, client: TextServiceClient, session):
        """Should return the short text unchanged"""
        assert client.expand_issue_text("dead") == "dead"
        assert session.sent == []

    def test_estimate_fallback(self, client: TextServiceClient, session):
        """Should return a zero, low certainty estimate"""
        estimate = client.estimate_cost(DeviceCategory.LAPTOP, "no power")

        assert estimate == CostEstimate(
            cost_estimate=0,
            certainty=Certainty.LOW,
            notes="Estimate unavailable: text service not configured.",
        )
        assert session.sent == []

    def test_follow_up_fallback(self, client: TextServiceClient):
        """Should draft a local pickup message with the formatted amount"""
        message = client.draft_follow_up("Asha", DeviceCategory.MOBILE, Decimal("1500"))

        assert message == (
            "Dear Asha, your Mobile repair is complete. "
            "Amount due: ₹1,500.00. Thank you for your business."
        )

    def test_warns_user(self, client: TextServiceClient, notices):
        """Should surface a warning each time a fallback is used"""
        client.expand_issue_text("dead")
        assert notices == ["AI assistance is not configured; using default text."]


class TestExpandIssueText:
    """Tests for expand_issue_text"""

    def test_returns_service_text(self, build_client, make_response, reply):
        """Should return the polished sentence"""
        client, session, _ = build_client(
            make_response(200, reply("  Device does not power on.  "))
        )

        assert client.expand_issue_text("dead") == "Device does not power on."
        body = json.loads(session.sent[0].body)
        assert "dead" in body["contents"][0]["parts"][0]["text"]
        assert "generationConfig" not in body

    def test_rate_limited_fallback(self, build_client, make_response, waiter):
        """Should fall back after three rate-limited attempts and 3s of backoff"""
        client, session, notices = build_client(
            *[make_response(429, {"error": {"message": "quota"}}) for _ in range(3)]
        )

        result = client.expand_issue_text("screen cracked")

        assert result == "Customer reported: screen cracked"
        assert len(session.sent) == 3
        assert sum(waiter.delays) >= 3.0
        assert notices == ["AI assistance is unavailable right now; using default text."]

    def test_connection_error_fallback(self, build_client, waiter):
        """Should fall back immediately when the service is unreachable"""
        client, session, _ = build_client(requests.exceptions.ConnectionError("down"))

        assert client.expand_issue_text("dead") == "Customer reported: dead"
        assert waiter.delays == []

    def test_empty_reply_fallback(self, build_client, make_response):
        """Should treat a reply without text as a failure"""
        client, _, _ = build_client(make_response(200, {"candidates": []}))

        assert client.expand_issue_text("dead") == "Customer reported: dead"

    def test_blank_input_is_not_sent(self, build_client):
        """Should not call the service for blank text"""
        client, session, _ = build_client()

        assert client.expand_issue_text("   ") == "   "
        assert session.sent == []

    def test_cancelled_fallback_is_quiet(self, build_client):
        """Should return the fallback without warning the user when cancelled"""
        client, session, notices = build_client()
        token = CancellationToken()
        token.cancel()

        assert client.expand_issue_text("dead", cancel_token=token) == "Customer reported: dead"
        assert session.sent == []
        assert notices == []


class TestEstimateCost:
    """Tests for estimate_cost"""

    def test_parses_structured_reply(self, build_client, make_response, reply):
        """Should parse the JSON estimate and request structured output"""
        payload = json.dumps({"costEstimate": 4500, "certainty": "High", "notes": "Panel swap"})
        client, session, _ = build_client(make_response(200, reply(payload)))

        estimate = client.estimate_cost(DeviceCategory.MOBILE, "cracked display")

        assert estimate.cost_estimate == 4500
        assert estimate.certainty == Certainty.HIGH
        assert estimate.notes == "Panel swap"
        config = json.loads(session.sent[0].body)["generationConfig"]
        assert config["responseMimeType"] == "application/json"
        assert config["responseSchema"]["required"] == ["costEstimate", "certainty", "notes"]

    @pytest.mark.parametrize("text, cost, certainty, notes", [
        ('```json\n{"costEstimate": 1200, "certainty": "medium", "notes": "ok"}\n```',
         1200, Certainty.MEDIUM, "ok"),
        ('{"costEstimate": -50, "certainty": "Sure", "notes": ""}',
         0, Certainty.LOW, "No additional notes."),
        ('{"costEstimate": "2999.7"}', 2999, Certainty.LOW, "No additional notes."),
        ('{"costEstimate": "lots", "certainty": "LOW"}', 0, Certainty.LOW, "No additional notes."),
        ("not json at all", 0, Certainty.LOW, "No additional notes."),
        ("[1, 2, 3]", 0, Certainty.LOW, "No additional notes."),
    ])
    def test_parses_defensively(self, build_client, make_response, reply, text, cost, certainty, notes):
        """Should clamp and default fields instead of failing"""
        client, _, _ = build_client(make_response(200, reply(text)))

        estimate = client.estimate_cost("Tablet", "battery")

        assert estimate.cost_estimate == cost
        assert estimate.certainty == certainty
        assert estimate.notes == notes

    def test_failure_fallback(self, build_client, make_response):
        """Should name the category and issue in the failure estimate"""
        client, _, _ = build_client(make_response(500, {"error": {"message": "boom"}}))

        estimate = client.estimate_cost(DeviceCategory.LAPTOP, "no power")

        assert estimate.cost_estimate == 0
        assert estimate.certainty == Certainty.LOW
        assert estimate.notes == "Automatic estimate failed for Laptop: no power. Inspect manually."


class TestDraftFollowUp:
    """Tests for draft_follow_up"""

    def test_returns_service_text(self, build_client, make_response, reply):
        """Should return the drafted message and mention the amount in the prompt"""
        client, session, _ = build_client(
            make_response(200, reply("Hi Asha, your phone is ready!"))
        )

        message = client.draft_follow_up("Asha", DeviceCategory.MOBILE, 150000)

        assert message == "Hi Asha, your phone is ready!"
        prompt = json.loads(session.sent[0].body)["contents"][0]["parts"][0]["text"]
        assert "₹1,50,000.00" in prompt

    def test_failure_fallback(self, build_client, make_response):
        """Should return the pickup fallback message"""
        client, _, _ = build_client(*[make_response(429, text="") for _ in range(3)])

        message = client.draft_follow_up("Asha", DeviceCategory.SMARTWATCH, 799)

        assert message == "Hello Asha, your Smartwatch is ready for pickup. Total: ₹799.00."
