"""Run configuration for the FXP transfer tool.

Provides ServerSettings and TransferSettings dataclasses and a
SettingsManager that loads them from a JSON file:

    {
      "connection_timeout": "5s",
      "fxp_transfer_timeout": "10m",
      "source": {"address": "src.example.com:21", "username": "u", "password": "p"},
      "destination": {"address": "dst.example.com", "is_tls": true, "insecure": true},
      "files": ["movies/trailer.mkv", "music/"]
    }

Entries of ``files`` ending with "/" are replicated as directories.
"""

import json
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import List, Optional

from fxp.config.paths import DEFAULT_CONFIG_PATH
from fxp.ftp.connection import FTPConnectionConfig, TLSMode
from fxp.utils.validators import (
    parse_duration,
    split_address,
    validate_address,
    validate_remote_path,
)

logger = logging.getLogger("fxp.settings")

DEFAULT_CONNECTION_TIMEOUT = 5.0
DEFAULT_FXP_TRANSFER_TIMEOUT = 10 * 60.0


class SettingsError(Exception):
    """Configuration could not be loaded or is invalid."""

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


def _duration_or_default(value: str, default: float, key: str) -> float:
    """Parse a duration setting, keeping the default when it is unusable."""
    if not value:
        return default
    try:
        seconds = parse_duration(value)
    except ValueError:
        logger.warning(f"ignoring invalid {key} '{value}', using {default:g}s")
        return default
    if seconds <= 0:
        logger.warning(f"ignoring non-positive {key} '{value}', using {default:g}s")
        return default
    return seconds


def _filter_fields(cls, data: dict) -> dict:
    valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
    return {k: v for k, v in data.items() if k in valid_fields}


@dataclass
class ServerSettings:
    """Connection settings for one FTP server."""
    address: str = ""
    username: str = "anonymous"
    password: str = ""
    is_tls: bool = False
    explicit_tls: bool = False
    insecure: bool = False
    debug: bool = False

    @property
    def host(self) -> str:
        return split_address(self.address)[0]

    @property
    def port(self) -> int:
        return split_address(self.address)[1]

    @property
    def tls_mode(self) -> TLSMode:
        """TLS negotiation implied by ``is_tls`` and ``explicit_tls``."""
        if not self.is_tls:
            return TLSMode.NONE
        return TLSMode.EXPLICIT if self.explicit_tls else TLSMode.IMPLICIT

    def to_connection_config(self, name: str, timeout: float) -> FTPConnectionConfig:
        """
        Build the connection configuration for this server.

        Args:
            name: Label used in debug traces, e.g. "source FTP"
            timeout: Connection timeout in seconds

        Returns:
            FTPConnectionConfig
        """
        return FTPConnectionConfig(
            host=self.host,
            port=self.port,
            username=self.username,
            timeout=timeout,
            tls_mode=self.tls_mode,
            insecure=self.insecure,
            debug=self.debug,
            name=name
        )

    def to_dict(self) -> dict:
        """Convert settings to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ServerSettings":
        """Create settings from dictionary, ignoring unknown keys."""
        return cls(**_filter_fields(cls, data or {}))


@dataclass
class TransferSettings:
    """Settings for one run of the tool."""
    connection_timeout: str = ""
    fxp_transfer_timeout: str = ""
    fail_fast_on_read_error: bool = False
    preliminary_codes: List[str] = field(default_factory=lambda: ["150"])
    source: ServerSettings = field(default_factory=ServerSettings)
    destination: ServerSettings = field(default_factory=ServerSettings)
    files: List[str] = field(default_factory=list)

    @property
    def connection_timeout_seconds(self) -> float:
        """Dial timeout in seconds (default 5s)."""
        return _duration_or_default(
            self.connection_timeout, DEFAULT_CONNECTION_TIMEOUT, "connection_timeout"
        )

    @property
    def fxp_transfer_timeout_seconds(self) -> float:
        """Per-file transfer deadline in seconds (default 10m)."""
        return _duration_or_default(
            self.fxp_transfer_timeout, DEFAULT_FXP_TRANSFER_TIMEOUT, "fxp_transfer_timeout"
        )

    def validate(self) -> List[str]:
        """
        Check the settings for problems that make a run impossible.

        Returns:
            List of error messages (empty when valid)
        """
        errors = []
        for label, server in (("source", self.source), ("destination", self.destination)):
            is_valid, error = validate_address(server.address)
            if not is_valid:
                errors.append(f"{label}.address: {error}")

        if not self.files:
            errors.append("'files' can not be empty")
        for entry in self.files:
            is_valid, error = validate_remote_path(entry)
            if not is_valid:
                errors.append(f"files: {error}")

        if not self.preliminary_codes:
            errors.append("'preliminary_codes' can not be empty")

        return errors

    def to_dict(self) -> dict:
        """Convert settings to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "TransferSettings":
        """Create settings from dictionary, ignoring unknown keys."""
        filtered = _filter_fields(cls, data)
        for key in ("source", "destination"):
            if key in filtered:
                if not isinstance(filtered[key], dict):
                    raise ValueError(f"'{key}' must be an object")
                filtered[key] = ServerSettings.from_dict(filtered[key])
        if "files" in filtered:
            if not isinstance(filtered["files"], list):
                raise ValueError("'files' must be a list")
            filtered["files"] = [str(f) for f in filtered["files"]]
        if "preliminary_codes" in filtered:
            codes = filtered["preliminary_codes"] or []
            if isinstance(codes, (str, int)):
                codes = [codes]
            filtered["preliminary_codes"] = [str(c) for c in codes]
        return cls(**filtered)


class SettingsManager:
    """Loads the run configuration file."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize settings manager.

        Args:
            config_path: Optional custom path, defaults to ./config.json
        """
        self._config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    @property
    def config_path(self) -> Path:
        """Path to configuration file."""
        return self._config_path

    def load(self) -> TransferSettings:
        """
        Load and validate settings from disk.

        Returns:
            TransferSettings instance

        Raises:
            SettingsError: If the file is missing, unreadable or invalid
        """
        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise SettingsError(f"Cannot read config file {self._config_path}", e)

        if not isinstance(data, dict):
            raise SettingsError(f"Config file {self._config_path} must hold a JSON object")

        try:
            settings = TransferSettings.from_dict(data)
        except (TypeError, ValueError) as e:
            raise SettingsError(f"Invalid config file {self._config_path}", e)

        errors = settings.validate()
        if errors:
            raise SettingsError(
                f"Invalid config file {self._config_path}: " + "; ".join(errors)
            )

        return settings
