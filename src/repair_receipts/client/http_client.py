"""
HTTP transport layer for the external text service
Handles request/response exchange with bounded retry on rate limiting,
cancellable backoff, audit logging and connection pooling
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Optional,
    Tuple,
    TypeVar,
    Union,
)

import requests
from requests.adapters import HTTPAdapter

from repair_receipts.config.receipt_config import TextServiceConfig
from repair_receipts.exceptions import ExternalServiceError


T = TypeVar("T")

logger = logging.getLogger(__name__)

# Longest single backoff, in milliseconds
MAX_RETRY_DELAY = 16000


class CancellationToken:
    """
    Lets a caller abandon an operation that is waiting to retry

    Backoff waits on the token's event, so cancelling wakes the waiter
    immediately instead of letting a stale retry resume later.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Suspend for up to timeout seconds; True if cancelled meanwhile"""
        return self._event.wait(timeout)


# Waits delay seconds on the token; returns True when cancelled
Waiter = Callable[[float, CancellationToken], bool]


def wait_on_token(delay: float, token: CancellationToken) -> bool:
    return token.wait(delay)


@dataclass
class HttpRequestOptions:
    """Request options for HTTP client"""
    headers: Optional[Dict[str, str]] = None
    params: Optional[Dict[str, Union[str, int, bool]]] = None
    timeout: Optional[int] = None  # milliseconds
    skip_retry: bool = False


@dataclass
class HttpResponse(Generic[T]):
    """HTTP response wrapper"""
    data: T
    status: int
    headers: Dict[str, str]
    duration: int  # milliseconds
    request_id: str
    attempts: int = 1


@dataclass
class HttpAuditEntry:
    """Audit log entry for HTTP requests"""
    timestamp: str
    request_id: str
    method: str
    url: str
    headers: Dict[str, str]
    body: Optional[Any] = None
    response: Optional[Dict[str, Any]] = None
    duration: int = 0
    success: bool = False
    error: Optional[str] = None
    retry_attempt: Optional[int] = None


# Sensitive fields that should be redacted in logs
SENSITIVE_FIELDS = [
    "authorization",
    "x-goog-api-key",
    "api_key",
    "apikey",
    "password",
    "access_token",
]

# Status names some providers use in place of a plain 429
RATE_LIMIT_STATUSES = ("RESOURCE_EXHAUSTED", "RATE_LIMIT_EXCEEDED")


class HttpClient:
    """
    HTTP Client for the external text service

    Features:
    - Bounded retry with exponential backoff, on rate limiting only
    - Cancellable backoff waits
    - Request ID generation for traceability
    - Audit logging with credential redaction
    - Connection keep-alive via session pooling

    Example:
        >>> client = HttpClient(TextServiceConfig(api_key="..."))
        >>> response = client.post("/models/gemini-2.0-flash:generateContent", {...})
        >>> print(response.data)
    """

    def __init__(
        self,
        config: TextServiceConfig,
        session: Optional[requests.Session] = None,
        wait: Optional[Waiter] = None,
    ) -> None:
        """
        Create a new HTTP client instance

        Args:
            config: Text service configuration
            session: Optional preconfigured session (tests inject fakes here)
            wait: Optional backoff waiter, defaults to waiting on the token
        """
        self.config = config
        self._wait = wait or wait_on_token
        self._audit_log_callback: Optional[Callable[[HttpAuditEntry], None]] = None
        self._session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        """Create requests session with connection pooling"""
        session = requests.Session()

        session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

        # Retries are handled by _execute_with_retry
        adapter = HTTPAdapter(
            pool_connections=4,
            pool_maxsize=4,
            max_retries=0,
        )

        session.mount("http://", adapter)
        session.mount("https://", adapter)

        return session

    def _generate_request_id(self) -> str:
        """Generate unique request ID for traceability"""
        timestamp = hex(int(time.time() * 1000))[2:]
        unique_id = uuid.uuid4().hex[:8]
        return f"rcpt-{timestamp}-{unique_id}"

    def _redact_sensitive_data(self, obj: Any) -> Any:
        """Redact sensitive data from object for logging"""
        if obj is None or isinstance(obj, str):
            return obj

        if isinstance(obj, list):
            return [self._redact_sensitive_data(item) for item in obj]

        if isinstance(obj, dict):
            redacted = {}
            for key, value in obj.items():
                lower_key = str(key).lower()
                is_sensitive = any(
                    field in lower_key for field in SENSITIVE_FIELDS
                )

                if is_sensitive:
                    redacted[key] = "[REDACTED]"
                elif isinstance(value, (dict, list)):
                    redacted[key] = self._redact_sensitive_data(value)
                else:
                    redacted[key] = value
            return redacted

        return obj

    def _calculate_retry_delay(self, attempt: int) -> float:
        """
        Calculate retry delay with exponential backoff

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        delay_ms = self.config.retry_delay * (2 ** attempt)
        delay_ms = min(delay_ms, MAX_RETRY_DELAY)
        return delay_ms / 1000.0

    def _error_details(
        self, response: requests.Response, error: Exception
    ) -> Tuple[str, Optional[str]]:
        """Extract message and provider status name from an error body"""
        try:
            data = response.json()
        except ValueError:
            return str(error), None

        body = data.get("error") if isinstance(data, dict) else None
        if not isinstance(body, dict):
            return str(error), None
        return body.get("message") or str(error), body.get("status")

    def _normalize_error(
        self, error: Exception, response: Optional[requests.Response] = None
    ) -> ExternalServiceError:
        """Normalize error from various sources into ExternalServiceError"""
        if isinstance(error, ExternalServiceError):
            return error

        if isinstance(error, requests.exceptions.Timeout):
            return ExternalServiceError.timeout()

        if isinstance(error, requests.exceptions.ConnectionError):
            return ExternalServiceError(
                f"Connection error: {error}", code="EXT04", cause=error
            )

        if isinstance(error, requests.exceptions.HTTPError) and response is not None:
            message, status_name = self._error_details(response, error)
            if response.status_code == 429 or status_name in RATE_LIMIT_STATUSES:
                return ExternalServiceError.rate_limited_response(
                    message, status_code=response.status_code, cause=error
                )
            return ExternalServiceError(
                message, status_code=response.status_code, cause=error
            )

        return ExternalServiceError(f"Request error: {error}", cause=error)

    def _create_audit_entry(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Optional[Any],
        request_id: str,
        start_time: float,
        response: Optional[requests.Response] = None,
        error: Optional[Exception] = None,
        retry_attempt: Optional[int] = None,
    ) -> HttpAuditEntry:
        """Create audit log entry"""
        duration = int((time.time() - start_time) * 1000)

        response_data = None
        if response is not None:
            try:
                response_body = response.json()
            except ValueError:
                response_body = response.text[:500] if response.text else None

            response_data = {
                "statusCode": response.status_code,
                "body": self._redact_sensitive_data(response_body),
            }

        return HttpAuditEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            request_id=request_id,
            method=method,
            url=url,
            headers=self._redact_sensitive_data(dict(headers)),
            body=self._redact_sensitive_data(body),
            response=response_data,
            duration=duration,
            success=error is None,
            error=str(error) if error else None,
            retry_attempt=retry_attempt,
        )

    def _log_audit(self, entry: HttpAuditEntry) -> None:
        """Log audit entry"""
        if self.config.enable_audit_log and self._audit_log_callback:
            self._audit_log_callback(entry)

    def set_audit_log_callback(
        self, callback: Callable[[HttpAuditEntry], None]
    ) -> None:
        """Set audit log callback"""
        self._audit_log_callback = callback

    def _execute_with_retry(
        self,
        method: str,
        url: str,
        data: Optional[Any] = None,
        options: Optional[HttpRequestOptions] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> HttpResponse[Any]:
        """Execute HTTP request, retrying only rate-limited attempts"""
        options = options or HttpRequestOptions()
        token = cancel_token or CancellationToken()

        max_attempts = 1 if options.skip_retry else self.config.max_attempts
        full_url = f"{self.config.base_url}{url}"
        timeout_seconds = (options.timeout or self.config.timeout) / 1000.0

        for attempt in range(max_attempts):
            if token.cancelled:
                raise ExternalServiceError.cancelled()

            start_time = time.time()
            request_id = self._generate_request_id()

            headers = dict(self._session.headers)
            headers["X-Request-ID"] = request_id
            if self.config.api_key:
                headers["x-goog-api-key"] = self.config.api_key
            if options.headers:
                headers.update(options.headers)

            response: Optional[requests.Response] = None

            try:
                request = requests.Request(
                    method=method,
                    url=full_url,
                    headers=headers,
                    params=options.params,
                    json=data if data else None,
                )
                prepared = self._session.prepare_request(request)

                response = self._session.send(
                    prepared,
                    timeout=timeout_seconds,
                )
                response.raise_for_status()

                audit_entry = self._create_audit_entry(
                    method=method,
                    url=full_url,
                    headers=headers,
                    body=data,
                    request_id=request_id,
                    start_time=start_time,
                    response=response,
                    retry_attempt=attempt if attempt > 0 else None,
                )
                self._log_audit(audit_entry)

                try:
                    response_data = response.json()
                except ValueError:
                    response_data = response.text

                duration = int((time.time() - start_time) * 1000)

                return HttpResponse(
                    data=response_data,
                    status=response.status_code,
                    headers=dict(response.headers),
                    duration=duration,
                    request_id=request_id,
                    attempts=attempt + 1,
                )

            except requests.exceptions.RequestException as e:
                error = self._normalize_error(e, response)

                audit_entry = self._create_audit_entry(
                    method=method,
                    url=full_url,
                    headers=headers,
                    body=data,
                    request_id=request_id,
                    start_time=start_time,
                    response=response,
                    error=error,
                    retry_attempt=attempt,
                )
                self._log_audit(audit_entry)

                if error.retryable and attempt < max_attempts - 1:
                    delay = self._calculate_retry_delay(attempt)
                    logger.warning(
                        f"Rate limited (attempt {attempt + 1}/{max_attempts}), "
                        f"retrying in {delay:.2f}s: {error}"
                    )
                    if self._wait(delay, token):
                        logger.info(f"Retry of {request_id} abandoned by caller")
                        raise ExternalServiceError.cancelled() from e
                    continue

                raise error from e

        raise ExternalServiceError("No attempts were made")

    def post(
        self,
        url: str,
        data: Optional[Any] = None,
        options: Optional[HttpRequestOptions] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> HttpResponse[Any]:
        """
        Perform POST request

        Args:
            url: Request URL (relative to base URL)
            data: Request body data
            options: Optional request options
            cancel_token: Lets the caller abandon pending retries

        Returns:
            HTTP response wrapper
        """
        return self._execute_with_retry("POST", url, data, options, cancel_token)

    @property
    def base_url(self) -> str:
        """Get base URL"""
        return self.config.base_url

    def close(self) -> None:
        """Close the HTTP session"""
        self._session.close()

    def __enter__(self) -> "HttpClient":
        """Context manager entry"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit"""
        self.close()
