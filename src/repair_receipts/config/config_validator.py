"""
Configuration Validator
Validates receipt configuration with clear error messages
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from repair_receipts.config.receipt_config import NumberingMode, PageSize


@dataclass
class ValidationErrorDetail:
    """Validation error detail"""
    field: str
    message: str
    value: Optional[Any] = None


@dataclass
class ValidationResult:
    """Validation result"""
    valid: bool
    errors: List[ValidationErrorDetail] = field(default_factory=list)


def _lookup(config: Dict[str, Any], dotted: str) -> Any:
    """Fetch a dotted key from a nested dictionary"""
    node: Any = config
    for part in dotted.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(part)
    return node


class ConfigValidator:
    """
    ConfigValidator class
    Provides comprehensive validation for receipt configuration
    """

    def __init__(self) -> None:
        self._errors: List[ValidationErrorDetail] = []

    def validate(self, config: Dict[str, Any]) -> ValidationResult:
        """
        Validate the entire configuration dictionary

        Args:
            config: Nested configuration dictionary to validate

        Returns:
            ValidationResult with any errors
        """
        self._errors = []

        self._validate_required(config)
        self._validate_formats(config)
        self._validate_ranges(config)
        self._validate_enums(config)
        self._validate_fonts(config)

        return ValidationResult(
            valid=len(self._errors) == 0,
            errors=self._errors.copy()
        )

    def validate_or_raise(self, config: Dict[str, Any]) -> None:
        """
        Validate and raise if invalid

        Args:
            config: Configuration dictionary to validate

        Raises:
            ConfigError: If configuration is invalid
        """
        from repair_receipts.exceptions import ConfigError

        result = self.validate(config)
        if not result.valid:
            error_messages = "; ".join(
                f"{e.field}: {e.message}" for e in result.errors
            )
            raise ConfigError(
                f"Configuration validation failed: {error_messages}",
                code="CONFIG_INVALID",
                details={"fields": [e.field for e in result.errors]},
            )

    def _validate_required(self, config: Dict[str, Any]) -> None:
        """Validate required fields are present and non-empty"""
        for field_name in ("shop.name", "store.app_id"):
            value = _lookup(config, field_name)
            if value is None:
                self._errors.append(ValidationErrorDetail(
                    field=field_name,
                    message=f"{field_name} is required"
                ))
            elif isinstance(value, str) and value.strip() == "":
                self._errors.append(ValidationErrorDetail(
                    field=field_name,
                    message=f"{field_name} cannot be empty",
                    value=value
                ))

    def _validate_formats(self, config: Dict[str, Any]) -> None:
        """Validate field formats"""
        prefix = _lookup(config, "shop.receipt_prefix")
        if prefix is not None:
            prefix_str = str(prefix)
            if not (prefix_str.isalnum() and prefix_str.upper() == prefix_str):
                self._errors.append(ValidationErrorDetail(
                    field="shop.receipt_prefix",
                    message="shop.receipt_prefix must be upper-case alphanumeric",
                    value=prefix
                ))

        base_url = _lookup(config, "text_service.base_url")
        if base_url is not None and base_url != "":
            if not str(base_url).startswith(("http://", "https://")):
                self._errors.append(ValidationErrorDetail(
                    field="text_service.base_url",
                    message="text_service.base_url must be a valid HTTP/HTTPS URL",
                    value=base_url
                ))

        host = config.get("messaging_host")
        if host is not None and ("://" in str(host) or "/" in str(host)):
            self._errors.append(ValidationErrorDetail(
                field="messaging_host",
                message="messaging_host must be a bare host name",
                value=host
            ))

        footnote = _lookup(config, "shop.footnote_lines")
        if footnote is not None:
            if not isinstance(footnote, list) or len(footnote) != 2:
                self._errors.append(ValidationErrorDetail(
                    field="shop.footnote_lines",
                    message="shop.footnote_lines must contain exactly two lines",
                    value=footnote
                ))

        zone = _lookup(config, "shop.timezone")
        if zone is not None:
            try:
                ZoneInfo(str(zone))
            except (ZoneInfoNotFoundError, ValueError):
                self._errors.append(ValidationErrorDetail(
                    field="shop.timezone",
                    message="shop.timezone must be an IANA time zone name",
                    value=zone
                ))

        for segment in ("store.app_id", "store.collection"):
            value = _lookup(config, segment)
            if isinstance(value, str) and "/" in value:
                self._errors.append(ValidationErrorDetail(
                    field=segment,
                    message=f"{segment} must not contain '/'",
                    value=value
                ))

    def _validate_ranges(self, config: Dict[str, Any]) -> None:
        """Validate numeric ranges"""
        timeout = _lookup(config, "text_service.timeout")
        if timeout is not None:
            if not isinstance(timeout, (int, float)) or timeout <= 0:
                self._errors.append(ValidationErrorDetail(
                    field="text_service.timeout",
                    message="timeout must be a positive number (milliseconds)",
                    value=timeout
                ))
            elif timeout < 1000:
                self._errors.append(ValidationErrorDetail(
                    field="text_service.timeout",
                    message="timeout should be at least 1000ms for reliable operation",
                    value=timeout
                ))
            elif timeout > 300000:
                self._errors.append(ValidationErrorDetail(
                    field="text_service.timeout",
                    message="timeout should not exceed 300000ms (5 minutes)",
                    value=timeout
                ))

        max_attempts = _lookup(config, "text_service.max_attempts")
        if max_attempts is not None:
            if not isinstance(max_attempts, int) or max_attempts < 1:
                self._errors.append(ValidationErrorDetail(
                    field="text_service.max_attempts",
                    message="max_attempts must be a positive integer",
                    value=max_attempts
                ))
            elif max_attempts > 10:
                self._errors.append(ValidationErrorDetail(
                    field="text_service.max_attempts",
                    message="max_attempts should not exceed 10",
                    value=max_attempts
                ))

        retry_delay = _lookup(config, "text_service.retry_delay")
        if retry_delay is not None:
            if not isinstance(retry_delay, (int, float)) or retry_delay < 0:
                self._errors.append(ValidationErrorDetail(
                    field="text_service.retry_delay",
                    message="retry_delay must be a non-negative number (milliseconds)",
                    value=retry_delay
                ))
            elif retry_delay > 60000:
                self._errors.append(ValidationErrorDetail(
                    field="text_service.retry_delay",
                    message="retry_delay should not exceed 60000ms (1 minute)",
                    value=retry_delay
                ))

        ttl = config.get("notification_ttl")
        if ttl is not None and (not isinstance(ttl, (int, float)) or ttl <= 0):
            self._errors.append(ValidationErrorDetail(
                field="notification_ttl",
                message="notification_ttl must be a positive number (seconds)",
                value=ttl
            ))

    def _validate_enums(self, config: Dict[str, Any]) -> None:
        """Validate enumerated settings"""
        checks = (
            ("store.numbering", NumberingMode),
            ("shop.page_size", PageSize),
        )
        for field_name, enum_cls in checks:
            value = _lookup(config, field_name)
            if value is None:
                continue
            valid_values = [e.value for e in enum_cls]
            raw = value.value if isinstance(value, enum_cls) else value
            if raw not in valid_values:
                self._errors.append(ValidationErrorDetail(
                    field=field_name,
                    message=f"{field_name} must be one of: {', '.join(valid_values)}",
                    value=value
                ))

    def _validate_fonts(self, config: Dict[str, Any]) -> None:
        """Font files are only checked by extension; loading happens at render time"""
        valid_extensions = (".ttf", ".otf")
        for field_name in ("shop.font_path", "shop.bold_font_path"):
            value = _lookup(config, field_name)
            if value is None or value == "":
                continue
            if not str(value).lower().endswith(valid_extensions):
                self._errors.append(ValidationErrorDetail(
                    field=field_name,
                    message=(
                        f"{field_name} must point to a font file "
                        f"({', '.join(valid_extensions)})"
                    ),
                    value=value
                ))
