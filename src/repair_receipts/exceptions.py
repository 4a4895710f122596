"""Exception classes for the repair receipts package"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ReceiptErrorCategory(str, Enum):
    """Error category codes"""
    VALIDATION = "VAL"
    STORE = "STORE"
    EXTERNAL = "EXT"
    DOCUMENT = "DOC"
    CONFIG = "CONFIG"
    UNKNOWN = "UNKNOWN"


class ReceiptError(Exception):
    """
    Base exception for receipt errors

    All errors in the package extend from this class.
    Provides consistent error handling and categorization.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        cause: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status_code = status_code
        self.cause = cause
        self.details = details
        self.timestamp = datetime.now(timezone.utc)
        self.category = self._determine_category(code)

    def _determine_category(self, code: Optional[str]) -> ReceiptErrorCategory:
        """Determine error category from code"""
        if not code:
            return ReceiptErrorCategory.UNKNOWN

        for category in ReceiptErrorCategory:
            if category is not ReceiptErrorCategory.UNKNOWN and code.startswith(category.value):
                return category

        return ReceiptErrorCategory.UNKNOWN

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary"""
        return {
            "name": self.__class__.__name__,
            "message": str(self),
            "code": self.code,
            "status_code": self.status_code,
            "category": self.category.value,
            "timestamp": self.timestamp.isoformat(),
            "details": self.details,
        }

    def has_code(self, code: str) -> bool:
        """Check if error has a specific code"""
        return self.code == code

    def is_category(self, category: ReceiptErrorCategory) -> bool:
        """Check if error belongs to a category"""
        return self.category == category

    def get_description(self) -> str:
        """Get human-readable error description"""
        parts = [str(self)]

        if self.code:
            parts.insert(0, f"[{self.code}]")

        if self.status_code:
            parts.append(f"(HTTP {self.status_code})")

        return " ".join(parts)


class ValidationError(ReceiptError):
    """Draft validation error, recovered locally with the draft retained"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code="VAL01", details=details)
        self.field = field


class StoreWriteError(ReceiptError):
    """Remote append or counter allocation failed"""

    def __init__(
        self,
        message: str,
        code: str = "STORE01",
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, code=code, cause=cause)


class StoreSubscriptionError(ReceiptError):
    """Live read of the remote collection failed"""

    def __init__(
        self,
        message: str,
        code: str = "STORE10",
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, code=code, cause=cause)


class ExternalServiceError(ReceiptError):
    """
    Failure talking to the external text service

    Never surfaced to the end user as a blocking failure; the text
    service client resolves it to a fallback value.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: str = "EXT01",
        rate_limited: bool = False,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, code=code, status_code=status_code, cause=cause)
        self.rate_limited = rate_limited

    @property
    def retryable(self) -> bool:
        """Only rate-limit responses are worth another attempt"""
        return self.rate_limited

    @classmethod
    def rate_limited_response(
        cls,
        message: str = "Rate limit exceeded",
        status_code: int = 429,
        cause: Optional[Exception] = None,
    ) -> "ExternalServiceError":
        """Create a rate limit error"""
        return cls(
            message, status_code=status_code, code="EXT02", rate_limited=True, cause=cause
        )

    @classmethod
    def timeout(cls, message: str = "Request timed out") -> "ExternalServiceError":
        """Create a timeout error"""
        return cls(message, status_code=408, code="EXT03")

    @classmethod
    def cancelled(cls, message: str = "Request cancelled") -> "ExternalServiceError":
        """Create an error for a request abandoned by its caller"""
        return cls(message, code="EXT_CANCELLED")


class DocumentUnavailableError(ReceiptError):
    """Rendering capability of the document layout engine is not ready"""

    def __init__(
        self,
        message: str,
        code: str = "DOC01",
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, code=code, cause=cause)


class ConfigError(ReceiptError):
    """Configuration error"""

    def __init__(
        self,
        message: str,
        code: str = "CONFIG01",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code=code, details=details)
