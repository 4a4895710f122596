"""
Configuration module
"""

from repair_receipts.config.receipt_config import (
    ReceiptConfig,
    ShopProfile,
    TextServiceConfig,
    StoreConfig,
    NumberingMode,
    PageSize,
    TEXT_SERVICE_BASE_URL,
    ENV_VAR_MAPPING,
    ConfigDefaults,
)
from repair_receipts.config.config_loader import ConfigLoader
from repair_receipts.config.config_validator import (
    ConfigValidator,
    ValidationResult,
    ValidationErrorDetail,
)

__all__ = [
    "ReceiptConfig",
    "ShopProfile",
    "TextServiceConfig",
    "StoreConfig",
    "NumberingMode",
    "PageSize",
    "TEXT_SERVICE_BASE_URL",
    "ENV_VAR_MAPPING",
    "ConfigDefaults",
    "ConfigLoader",
    "ConfigValidator",
    "ValidationResult",
    "ValidationErrorDetail",
]
