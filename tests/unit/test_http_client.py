"""
HTTP Client Unit Tests
"""

import json

import pytest
import requests

from repair_receipts.client import CancellationToken, HttpClient, HttpRequestOptions
from repair_receipts.config import TextServiceConfig
from repair_receipts.exceptions import ExternalServiceError, ReceiptErrorCategory


class RecordingWaiter:
    """Backoff waiter that records delays instead of sleeping"""

    def __init__(self, cancel_after: int = 0) -> None:
        self.delays = []
        self.cancel_after = cancel_after

    def __call__(self, delay: float, token: CancellationToken) -> bool:
        self.delays.append(delay)
        if self.cancel_after and len(self.delays) >= self.cancel_after:
            token.cancel()
        return token.cancelled


class TestHttpClientRetry:
    """Tests for bounded retry on rate limiting"""

    @pytest.fixture
    def waiter(self) -> RecordingWaiter:
        return RecordingWaiter()

    def test_success_first_attempt(self, text_config, fake_session, make_response, reply, waiter):
        """Should return parsed JSON with a single attempt"""
        session = fake_session([make_response(200, reply("ok"))])
        client = HttpClient(text_config, session=session, wait=waiter)

        response = client.post("/models/test:generateContent", {"contents": []})

        assert response.status == 200
        assert response.attempts == 1
        assert response.data == reply("ok")
        assert waiter.delays == []

    def test_sends_api_key_and_request_id(self, text_config, fake_session, make_response, reply):
        """Should attach the credential header and a request id"""
        session = fake_session([make_response(200, reply("ok"))])
        client = HttpClient(text_config, session=session, wait=RecordingWaiter())

        client.post("/models/test:generateContent", {"contents": []})

        sent = session.sent[0]
        assert sent.url == "https://text.example.test/models/test:generateContent"
        assert sent.headers["x-goog-api-key"] == "secret-key"
        assert sent.headers["X-Request-ID"].startswith("rcpt-")
        assert json.loads(sent.body) == {"contents": []}

    def test_retries_rate_limit_with_backoff(self, text_config, fake_session, make_response, reply, waiter):
        """Should wait 1s then 2s between rate-limited attempts"""
        session = fake_session([
            make_response(429, {"error": {"message": "quota", "status": "RESOURCE_EXHAUSTED"}}),
            make_response(429, {"error": {"message": "quota"}}),
            make_response(200, reply("ok")),
        ])
        client = HttpClient(text_config, session=session, wait=waiter)

        response = client.post("/models/test:generateContent", {"contents": []})

        assert response.attempts == 3
        assert waiter.delays == [1.0, 2.0]
        assert len(session.sent) == 3

    def test_gives_up_after_max_attempts(self, text_config, fake_session, make_response, waiter):
        """Should raise a rate limit error after exactly three attempts"""
        session = fake_session([make_response(429, text="slow down") for _ in range(3)])
        client = HttpClient(text_config, session=session, wait=waiter)

        with pytest.raises(ExternalServiceError) as exc_info:
            client.post("/models/test:generateContent", {"contents": []})

        assert len(session.sent) == 3
        assert waiter.delays == [1.0, 2.0]
        assert exc_info.value.rate_limited is True
        assert exc_info.value.status_code == 429
        assert exc_info.value.has_code("EXT02")
        assert exc_info.value.is_category(ReceiptErrorCategory.EXTERNAL)

    def test_resource_exhausted_status_is_rate_limit(self, fake_session, make_response):
        """Should treat a RESOURCE_EXHAUSTED body as rate limiting"""
        config = TextServiceConfig(api_key="k", base_url="https://text.example.test", max_attempts=1)
        session = fake_session([
            make_response(400, {"error": {"message": "exhausted", "status": "RESOURCE_EXHAUSTED"}}),
        ])
        client = HttpClient(config, session=session, wait=RecordingWaiter())

        with pytest.raises(ExternalServiceError) as exc_info:
            client.post("/x", {"a": 1})

        assert exc_info.value.rate_limited is True
        assert str(exc_info.value) == "exhausted"
        assert exc_info.value.has_code("EXT02")
        assert exc_info.value.status_code == 400
        assert exc_info.value.cause is not None

    def test_server_error_not_retried(self, text_config, fake_session, make_response, waiter):
        """Should fail immediately on non-rate-limit HTTP errors"""
        session = fake_session([make_response(500, {"error": {"message": "boom"}})])
        client = HttpClient(text_config, session=session, wait=waiter)

        with pytest.raises(ExternalServiceError) as exc_info:
            client.post("/x", {"a": 1})

        assert len(session.sent) == 1
        assert waiter.delays == []
        assert exc_info.value.retryable is False
        assert exc_info.value.status_code == 500

    def test_connection_error_not_retried(self, text_config, fake_session, waiter):
        """Should surface connection failures without retrying"""
        session = fake_session([requests.exceptions.ConnectionError("refused")])
        client = HttpClient(text_config, session=session, wait=waiter)

        with pytest.raises(ExternalServiceError) as exc_info:
            client.post("/x", {"a": 1})

        assert exc_info.value.has_code("EXT04")
        assert waiter.delays == []

    def test_timeout_error(self, text_config, fake_session):
        """Should normalize timeouts"""
        session = fake_session([requests.exceptions.ReadTimeout("slow")])
        client = HttpClient(text_config, session=session, wait=RecordingWaiter())

        with pytest.raises(ExternalServiceError) as exc_info:
            client.post("/x", {"a": 1})

        assert exc_info.value.has_code("EXT03")

    def test_skip_retry_option(self, text_config, fake_session, make_response, waiter):
        """Should make a single attempt when retries are skipped"""
        session = fake_session([make_response(429, text="")])
        client = HttpClient(text_config, session=session, wait=waiter)

        with pytest.raises(ExternalServiceError):
            client.post("/x", {"a": 1}, options=HttpRequestOptions(skip_retry=True))

        assert len(session.sent) == 1

    def test_backoff_is_capped(self, fake_session):
        """Should cap a single backoff at 16 seconds"""
        config = TextServiceConfig(api_key="k", retry_delay=10000)
        client = HttpClient(config, session=fake_session([]))
        assert client._calculate_retry_delay(0) == 10.0
        assert client._calculate_retry_delay(3) == 16.0


class TestHttpClientCancellation:
    """Tests for cancelling pending retries"""

    def test_cancel_during_backoff(self, text_config, fake_session, make_response):
        """Should stop retrying once the caller cancels"""
        waiter = RecordingWaiter(cancel_after=1)
        session = fake_session([make_response(429, text="") for _ in range(3)])
        client = HttpClient(text_config, session=session, wait=waiter)

        with pytest.raises(ExternalServiceError) as exc_info:
            client.post("/x", {"a": 1}, cancel_token=CancellationToken())

        assert exc_info.value.has_code("EXT_CANCELLED")
        assert len(session.sent) == 1
        assert len(session.responses) == 2

    def test_already_cancelled(self, text_config, fake_session):
        """Should not send anything for a cancelled token"""
        token = CancellationToken()
        token.cancel()
        session = fake_session([])
        client = HttpClient(text_config, session=session, wait=RecordingWaiter())

        with pytest.raises(ExternalServiceError):
            client.post("/x", {"a": 1}, cancel_token=token)

        assert session.sent == []

    def test_token_wait_returns_early(self):
        """Should wake a token wait immediately when cancelled"""
        token = CancellationToken()
        token.cancel()
        assert token.wait(30) is True
        assert token.cancelled is True


class TestHttpClientAudit:
    """Tests for audit logging"""

    @pytest.fixture
    def audit_config(self) -> TextServiceConfig:
        return TextServiceConfig(
            api_key="secret-key",
            base_url="https://text.example.test",
            enable_audit_log=True,
        )

    def test_audit_redacts_credentials(self, audit_config, fake_session, make_response, reply):
        """Should report each attempt with the api key redacted"""
        entries = []
        session = fake_session([make_response(200, reply("ok"))])
        client = HttpClient(audit_config, session=session, wait=RecordingWaiter())
        client.set_audit_log_callback(entries.append)

        client.post("/x", {"api_key": "in-body", "prompt": "hi"})

        assert len(entries) == 1
        entry = entries[0]
        assert entry.success is True
        assert entry.headers["x-goog-api-key"] == "[REDACTED]"
        assert entry.body == {"api_key": "[REDACTED]", "prompt": "hi"}
        assert entry.response["statusCode"] == 200

    def test_audit_records_failed_attempts(self, audit_config, fake_session, make_response, reply):
        """Should emit one entry per attempt including retries"""
        entries = []
        session = fake_session([make_response(429, text=""), make_response(200, reply("ok"))])
        client = HttpClient(audit_config, session=session, wait=RecordingWaiter())
        client.set_audit_log_callback(entries.append)

        client.post("/x", {"a": 1})

        assert [e.success for e in entries] == [False, True]
        assert entries[1].retry_attempt == 1

    def test_audit_disabled(self, text_config, fake_session, make_response, reply):
        """Should not call the callback when audit logging is off"""
        entries = []
        client = HttpClient(
            text_config,
            session=fake_session([make_response(200, reply("ok"))]),
            wait=RecordingWaiter(),
        )
        client.set_audit_log_callback(entries.append)

        client.post("/x", {"a": 1})

        assert entries == []

    def test_context_manager_closes_session(self, text_config, fake_session):
        """Should close the session on exit"""
        session = fake_session([])
        with HttpClient(text_config, session=session):
            pass
        assert session.closed is True
