"""
Repair Receipts Configuration Types and Schema
Type-safe configuration objects passed explicitly into each component
"""

from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class NumberingMode(str, Enum):
    """How receipt numbers are allocated"""
    SERVER = "server"
    SNAPSHOT = "snapshot"


class PageSize(str, Enum):
    """Supported physical page sizes"""
    A4 = "A4"
    A5 = "A5"


# Base URL of the generateContent-style text service
TEXT_SERVICE_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

# Collection paths are scoped by application id and the public data partition
COLLECTION_PATH_TEMPLATE = "artifacts/{app_id}/public/data/{collection}"


class ConfigDefaults:
    """Default configuration values"""
    RECEIPT_PREFIX = "PFX"
    CURRENCY_SYMBOL = "₹"
    DOCUMENT_CURRENCY_SYMBOL = "Rs. "
    PAGE_SIZE = PageSize.A4
    TIMEZONE = "Asia/Kolkata"
    TEXT_MODEL = "gemini-2.0-flash"
    TIMEOUT = 30000
    MAX_ATTEMPTS = 3
    RETRY_DELAY = 1000
    ENABLE_AUDIT_LOG = False
    COLLECTION = "receipts"
    NUMBERING = NumberingMode.SERVER
    MESSAGING_HOST = "wa.me"
    NOTIFICATION_TTL = 4.0
    FOOTNOTE_LINES = [
        "Goods once repaired will be returned only against this receipt.",
        "Devices not collected within 30 days are not our responsibility.",
    ]


# Environment variable mapping onto dotted configuration keys
ENV_VAR_MAPPING = {
    "RECEIPTS_SHOP_NAME": "shop.name",
    "RECEIPTS_SHOP_PHONE": "shop.phone",
    "RECEIPTS_SHOP_EMAIL": "shop.email",
    "RECEIPTS_RECEIPT_PREFIX": "shop.receipt_prefix",
    "RECEIPTS_FONT_PATH": "shop.font_path",
    "RECEIPTS_BOLD_FONT_PATH": "shop.bold_font_path",
    "RECEIPTS_PAGE_SIZE": "shop.page_size",
    "RECEIPTS_TIMEZONE": "shop.timezone",
    "RECEIPTS_TEXT_API_KEY": "text_service.api_key",
    "RECEIPTS_TEXT_BASE_URL": "text_service.base_url",
    "RECEIPTS_TEXT_MODEL": "text_service.model",
    "RECEIPTS_TEXT_TIMEOUT": "text_service.timeout",
    "RECEIPTS_TEXT_MAX_ATTEMPTS": "text_service.max_attempts",
    "RECEIPTS_TEXT_RETRY_DELAY": "text_service.retry_delay",
    "RECEIPTS_TEXT_ENABLE_AUDIT_LOG": "text_service.enable_audit_log",
    "RECEIPTS_APP_ID": "store.app_id",
    "RECEIPTS_COLLECTION": "store.collection",
    "RECEIPTS_NUMBERING": "store.numbering",
    "RECEIPTS_MESSAGING_HOST": "messaging_host",
}


class ShopProfile(BaseModel):
    """
    Fixed shop metadata printed on every receipt document
    """

    name: str = Field(..., description="Shop name shown in the header", min_length=1)
    tagline: str = Field(default="", description="Line under the shop name")
    address_lines: List[str] = Field(
        default_factory=list,
        description="Fixed address lines of the header block",
    )
    phone: str = Field(default="", description="Shop contact phone")
    email: str = Field(default="", description="Shop contact email")
    receipt_prefix: str = Field(
        default=ConfigDefaults.RECEIPT_PREFIX,
        description="Prefix of every receipt number",
        min_length=1,
        max_length=8,
    )
    currency_symbol: str = Field(default=ConfigDefaults.CURRENCY_SYMBOL)
    document_currency_symbol: str = Field(
        default=ConfigDefaults.DOCUMENT_CURRENCY_SYMBOL,
        description="Symbol printed when no Unicode font is configured",
    )
    footnote_lines: List[str] = Field(
        default_factory=lambda: list(ConfigDefaults.FOOTNOTE_LINES),
        description="The two footnote lines at the bottom of the page",
    )
    font_path: Optional[str] = Field(default=None, description="Regular TTF font")
    bold_font_path: Optional[str] = Field(default=None, description="Bold TTF font")
    page_size: PageSize = Field(default=ConfigDefaults.PAGE_SIZE)
    timezone: str = Field(
        default=ConfigDefaults.TIMEZONE,
        description="IANA zone of the shop; sets the numbering year and printed dates",
    )

    model_config = {
        "str_strip_whitespace": True,
        "frozen": True,
    }

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Validate timezone is a known IANA zone"""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone: {v}") from e
        return v

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @field_validator("receipt_prefix")
    @classmethod
    def validate_receipt_prefix(cls, v: str) -> str:
        """Validate the prefix is upper-case alphanumeric"""
        if not (v.isalnum() and v.upper() == v):
            raise ValueError("receipt_prefix must be upper-case alphanumeric")
        return v

    @field_validator("footnote_lines")
    @classmethod
    def validate_footnote_lines(cls, v: List[str]) -> List[str]:
        """The footnote is exactly two lines"""
        if len(v) != 2:
            raise ValueError("footnote_lines must contain exactly two lines")
        return v


class TextServiceConfig(BaseModel):
    """
    External text service settings

    An absent api_key means the service is unconfigured and every
    operation resolves to its local fallback.
    """

    api_key: Optional[str] = Field(default=None, description="Caller-supplied credential")
    base_url: str = Field(default=TEXT_SERVICE_BASE_URL)
    model: str = Field(default=ConfigDefaults.TEXT_MODEL, min_length=1)
    timeout: int = Field(
        default=ConfigDefaults.TIMEOUT,
        description="Request timeout in milliseconds",
        ge=1000,
        le=300000,
    )
    max_attempts: int = Field(
        default=ConfigDefaults.MAX_ATTEMPTS,
        description="Total attempts per call",
        ge=1,
        le=10,
    )
    retry_delay: int = Field(
        default=ConfigDefaults.RETRY_DELAY,
        description="Base backoff in milliseconds, doubled per attempt",
        ge=0,
        le=60000,
    )
    enable_audit_log: bool = Field(default=ConfigDefaults.ENABLE_AUDIT_LOG)

    model_config = {
        "str_strip_whitespace": True,
        "frozen": True,
    }

    @field_validator("api_key")
    @classmethod
    def blank_key_is_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat an empty credential as unconfigured"""
        return v or None

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate base_url is a valid URL"""
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must be a valid HTTP/HTTPS URL")
        return v.rstrip("/")

    @property
    def configured(self) -> bool:
        """Whether a credential is present"""
        return self.api_key is not None


class StoreConfig(BaseModel):
    """Remote collection settings"""

    app_id: str = Field(..., description="Application identifier", min_length=1)
    collection: str = Field(default=ConfigDefaults.COLLECTION, min_length=1)
    numbering: NumberingMode = Field(default=ConfigDefaults.NUMBERING)

    model_config = {
        "str_strip_whitespace": True,
        "frozen": True,
    }

    @field_validator("app_id", "collection")
    @classmethod
    def validate_path_segment(cls, v: str) -> str:
        """Path segments may not contain separators"""
        if "/" in v:
            raise ValueError("must not contain '/'")
        return v

    @property
    def collection_path(self) -> str:
        """Path of the receipts collection"""
        return COLLECTION_PATH_TEMPLATE.format(app_id=self.app_id, collection=self.collection)

    @property
    def counter_path(self) -> str:
        """Path of the counters collection used for number allocation"""
        return COLLECTION_PATH_TEMPLATE.format(app_id=self.app_id, collection="counters")


class ReceiptConfig(BaseModel):
    """
    Main configuration class
    Aggregates every setting the core needs
    """

    shop: ShopProfile
    store: StoreConfig
    text_service: TextServiceConfig = Field(default_factory=TextServiceConfig)
    messaging_host: str = Field(default=ConfigDefaults.MESSAGING_HOST, min_length=1)
    notification_ttl: float = Field(
        default=ConfigDefaults.NOTIFICATION_TTL,
        description="Seconds before a notification auto-dismisses",
        gt=0,
    )

    model_config = {
        "frozen": True,
    }

    @field_validator("messaging_host")
    @classmethod
    def validate_messaging_host(cls, v: str) -> str:
        """Host only, no scheme or path"""
        if "://" in v or "/" in v:
            raise ValueError("messaging_host must be a bare host name")
        return v
