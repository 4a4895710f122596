"""
Configuration Loader
Loads receipt configuration from various sources
"""

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from repair_receipts.config.receipt_config import (
    ENV_VAR_MAPPING,
    ConfigDefaults,
    ReceiptConfig,
)
from repair_receipts.config.config_validator import ConfigValidator
from repair_receipts.exceptions import ConfigError


class ConfigLoader:
    """
    ConfigLoader class
    Provides multiple ways to load and merge configuration
    """

    def __init__(self) -> None:
        self._validator = ConfigValidator()

    def from_file(self, path: Union[str, Path]) -> Dict[str, Any]:
        """
        Load configuration from a JSON file

        Args:
            path: Path to JSON configuration file

        Returns:
            Loaded configuration dictionary

        Raises:
            ConfigError: If file not found or invalid JSON
        """
        file_path = Path(path).resolve()

        if not file_path.exists():
            raise ConfigError(
                f"Configuration file not found: {file_path}",
                code="CONFIG_FILE_NOT_FOUND"
            )

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                config = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(
                f"Invalid JSON in configuration file: {file_path}",
                code="CONFIG_PARSE_ERROR"
            ) from e

        return self._process_font_paths(config, file_path.parent)

    def from_environment(self) -> Dict[str, Any]:
        """
        Load configuration from environment variables

        Returns:
            Nested configuration dictionary from environment variables
        """
        config: Dict[str, Any] = {}

        for env_var, config_key in ENV_VAR_MAPPING.items():
            value = os.environ.get(env_var)
            if value is not None and value != "":
                self._set_nested(config, config_key, self._parse_env_value(config_key, value))

        return config

    def from_dict(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Load configuration from a dictionary

        Args:
            config: Configuration dictionary

        Returns:
            Deep copy of configuration dictionary
        """
        return copy.deepcopy(config)

    def merge(self, *sources: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge multiple configuration sources
        Priority: later sources override earlier sources; nested sections merge

        Args:
            sources: Configuration dictionaries in order of increasing priority

        Returns:
            Merged configuration dictionary
        """
        merged: Dict[str, Any] = {}

        for source in sources:
            self._merge_into(merged, source)

        return merged

    def resolve(self, config: Dict[str, Any]) -> ReceiptConfig:
        """
        Resolve configuration with defaults and validation

        Args:
            config: Partial configuration dictionary

        Returns:
            Fully resolved ReceiptConfig object

        Raises:
            ConfigError: If configuration is invalid
        """
        self._validator.validate_or_raise(config)

        try:
            return ReceiptConfig(**config)
        except PydanticValidationError as e:
            raise ConfigError(
                f"Configuration validation failed: {e}",
                code="CONFIG_INVALID",
            ) from e

    def load(
        self,
        file: Optional[Union[str, Path]] = None,
        env: bool = True,
        config: Optional[Dict[str, Any]] = None,
    ) -> ReceiptConfig:
        """
        Load, merge, and resolve configuration from multiple sources

        Args:
            file: Path to JSON configuration file (optional)
            env: Whether to load from environment variables (default: True)
            config: Programmatic configuration dictionary (optional)

        Returns:
            Fully resolved ReceiptConfig object
        """
        sources: list[Dict[str, Any]] = []

        if file is not None:
            sources.append(self.from_file(file))

        if env:
            sources.append(self.from_environment())

        if config is not None:
            sources.append(config)

        merged = self.merge(*sources)
        return self.resolve(merged)

    def create_template(self, path: Union[str, Path]) -> None:
        """
        Create a configuration template file

        Args:
            path: Path to write template
        """
        template = {
            "shop": {
                "name": "YOUR_SHOP_NAME",
                "tagline": "Mobile & Laptop Repairs",
                "address_lines": ["Shop No. 1, Main Road", "City - 000000"],
                "phone": "+91 00000 00000",
                "email": "shop@example.com",
                "receipt_prefix": ConfigDefaults.RECEIPT_PREFIX,
                "footnote_lines": list(ConfigDefaults.FOOTNOTE_LINES),
                "font_path": "",
                "page_size": ConfigDefaults.PAGE_SIZE.value,
                "timezone": ConfigDefaults.TIMEZONE,
            },
            "store": {
                "app_id": "YOUR_APP_ID",
                "collection": ConfigDefaults.COLLECTION,
                "numbering": ConfigDefaults.NUMBERING.value,
            },
            "text_service": {
                "api_key": "",
                "model": ConfigDefaults.TEXT_MODEL,
                "timeout": ConfigDefaults.TIMEOUT,
                "max_attempts": ConfigDefaults.MAX_ATTEMPTS,
                "retry_delay": ConfigDefaults.RETRY_DELAY,
                "enable_audit_log": ConfigDefaults.ENABLE_AUDIT_LOG,
            },
            "messaging_host": ConfigDefaults.MESSAGING_HOST,
        }

        file_path = Path(path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, "w", encoding="utf-8") as f:
            json.dump(template, f, indent=2, ensure_ascii=False)

    def _parse_env_value(self, key: str, value: str) -> Any:
        """Parse environment variable value to appropriate type"""
        if key == "text_service.enable_audit_log":
            return value.lower() in ("true", "1", "yes")

        if key in ("text_service.timeout", "text_service.max_attempts", "text_service.retry_delay"):
            try:
                return int(value)
            except ValueError:
                return value

        if key == "store.numbering":
            return value.lower()

        if key == "shop.page_size":
            return value.upper()

        return value

    def _process_font_paths(
        self, config: Dict[str, Any], base_path: Path
    ) -> Dict[str, Any]:
        """Resolve font paths relative to the config file"""
        processed = dict(config)
        shop = processed.get("shop")
        if not isinstance(shop, dict):
            return processed

        shop = dict(shop)
        for key in ("font_path", "bold_font_path"):
            value = shop.get(key)
            if isinstance(value, str) and value:
                font_path = Path(value)
                if not font_path.is_absolute():
                    shop[key] = str(base_path / font_path)
            elif value == "":
                shop[key] = None
        processed["shop"] = shop
        return processed

    def _set_nested(self, config: Dict[str, Any], dotted: str, value: Any) -> None:
        """Assign a dotted key inside a nested dictionary"""
        parts = dotted.split(".")
        node = config
        for part in parts[:-1]:
            node = node.setdefault(part, {})
        node[parts[-1]] = value

    def _merge_into(self, target: Dict[str, Any], source: Dict[str, Any]) -> None:
        """Recursively merge source into target, skipping None values"""
        for key, value in source.items():
            if value is None:
                continue
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                self._merge_into(target[key], value)
            elif isinstance(value, dict):
                target[key] = {}
                self._merge_into(target[key], value)
            else:
                target[key] = value
