"""Configuration loader with 3-tier parameter precedence."""

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from dotenv import load_dotenv

from ..auth.credentials import Credentials
from ..errors import ConfigurationError
from .defaults import DefaultConfig, RestParams, StreamParams, get_default_config
from .validation import ConfigValidator

CONFIG_FILE_NAME = "okx.yaml"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def parse_bool(value: Any) -> bool:
    """Parse an environment-style boolean ("1"/"0", "true"/"false")."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"Not a boolean value: {value!r}")


@dataclass(frozen=True)
class ConfigLoader:
    """Manages configuration loading with 3-tier precedence."""

    config_dir: Path
    defaults: DefaultConfig
    environ: Mapping[str, str] = field(default_factory=lambda: os.environ)

    @classmethod
    def create(
        cls,
        config_dir: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
        env_file: Optional[Path] = None,
    ) -> "ConfigLoader":
        """Create a ConfigLoader instance.

        When reading the process environment, a ``.env`` file is loaded
        first (without overriding variables that are already set).
        """
        if config_dir is None:
            config_dir = Path.cwd() / "config"

        if environ is None:
            load_dotenv(env_file)
            environ = os.environ

        return cls(
            config_dir=config_dir,
            defaults=get_default_config(),
            environ=environ,
        )

    def load_file_config(self) -> dict[str, Any]:
        """Load overrides from ``okx.yaml`` in the config directory, if present."""
        config_file = self.config_dir / CONFIG_FILE_NAME

        if not config_file.exists():
            return {}

        with open(config_file) as f:
            file_config = yaml.safe_load(f)

        return file_config or {}

    def load_env_config(self) -> dict[str, Any]:
        """Collect overrides from OKX_* environment variables."""
        env = self.environ
        config: dict[str, Any] = {"rest": {}, "stream": {}}

        if env.get("OKX_API_URL"):
            config["rest"]["base_url"] = env["OKX_API_URL"]
        if env.get("OKX_API_TIMEOUT_MS"):
            config["rest"]["timeout_ms"] = self._parse_int("OKX_API_TIMEOUT_MS")
        if env.get("OKX_REQUEST_EXPIRATION_MS"):
            config["rest"]["request_expiration_ms"] = self._parse_int("OKX_REQUEST_EXPIRATION_MS")
        if env.get("OKX_WEBSOCKET_URL"):
            config["stream"]["public_url"] = env["OKX_WEBSOCKET_URL"]
        if env.get("OKX_PRIVATE_WEBSOCKET_URL"):
            config["stream"]["private_url"] = env["OKX_PRIVATE_WEBSOCKET_URL"]
        if env.get("OKX_BUSINESS_WEBSOCKET_URL"):
            config["stream"]["business_url"] = env["OKX_BUSINESS_WEBSOCKET_URL"]
        if env.get("OKX_WEBSOCKET_FALLBACKS"):
            config["stream"]["fallback_urls"] = [
                url.strip() for url in env["OKX_WEBSOCKET_FALLBACKS"].split(",") if url.strip()
            ]
        if env.get("OKX_SIMULATED_TRADING"):
            config["simulated_trading"] = parse_bool(env["OKX_SIMULATED_TRADING"])

        return {key: value for key, value in config.items() if value != {}}

    def merge_config(self, overrides: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """
        Merge configuration with 3-tier precedence.

        Priority order:
        1. Explicit overrides and environment variables (highest priority)
        2. ``okx.yaml`` file overrides
        3. Global defaults (lowest priority)
        """
        config = self._dataclass_to_dict(self.defaults)
        config = self._deep_merge(config, self.load_file_config())
        config = self._deep_merge(config, self.load_env_config())

        if overrides:
            config = self._deep_merge(config, overrides)

        return config

    def load(self, overrides: Optional[dict[str, Any]] = None) -> DefaultConfig:
        """Build a validated, immutable configuration."""
        merged = self.merge_config(overrides)

        errors = ConfigValidator.validate_config(merged)
        if errors:
            details = "; ".join(f"{e.field}: {e.message}" for e in errors)
            raise ConfigurationError(f"Invalid configuration: {details}",
                                     setting=errors[0].field)

        stream = dict(merged.get("stream", {}))
        stream["fallback_urls"] = tuple(stream.get("fallback_urls") or ())

        return DefaultConfig(
            rest=self._build(RestParams, merged.get("rest", {})),
            stream=self._build(StreamParams, stream),
            simulated_trading=parse_bool(merged.get("simulated_trading", True)),
        )

    def load_credentials(self, simulated: Optional[bool] = None) -> Credentials:
        """Read OKX_API_KEY, OKX_API_SECRET and OKX_PASSPHRASE.

        ``simulated`` defaults to the merged ``simulated_trading`` setting.
        """
        values = {}
        for name in ("OKX_API_KEY", "OKX_API_SECRET", "OKX_PASSPHRASE"):
            value = self.environ.get(name)
            if not value:
                raise ConfigurationError(f"Missing environment variable: {name}", setting=name)
            values[name] = value

        if simulated is None:
            simulated = parse_bool(self.merge_config()["simulated_trading"])

        return Credentials(
            api_key=values["OKX_API_KEY"],
            api_secret=values["OKX_API_SECRET"],
            passphrase=values["OKX_PASSPHRASE"],
            is_simulated=simulated,
        )

    def _parse_int(self, name: str) -> int:
        try:
            return int(self.environ[name])
        except ValueError:
            raise ConfigurationError(
                f"{name} must be an integer, got {self.environ[name]!r}", setting=name
            ) from None

    @staticmethod
    def _build(cls: type, values: dict[str, Any]) -> Any:
        known = {f.name for f in fields(cls)}
        return replace(cls(), **{k: v for k, v in values.items() if k in known})

    def _dataclass_to_dict(self, obj: Any) -> dict[str, Any]:
        """Convert nested dataclasses to dictionary."""
        if hasattr(obj, '__dataclass_fields__'):
            result = {}
            for field_name in obj.__dataclass_fields__:
                value = getattr(obj, field_name)
                if hasattr(value, '__dataclass_fields__'):
                    result[field_name] = self._dataclass_to_dict(value)
                else:
                    result[field_name] = value
            return result
        return obj  # type: ignore[no-any-return]

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result
