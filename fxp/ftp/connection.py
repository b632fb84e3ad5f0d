"""FTP connection management for the FXP transfer tool.

Provides ConnectionState and TLSMode enums, the FTPConnectionConfig
dataclass, ftplib session classes for plain, explicit and implicit
FTPS, and FTPConnectionManager for managing one server connection.
"""

import logging
import socket
import ssl
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from ftplib import FTP, FTP_TLS, error_perm
from typing import Optional

from fxp.ftp.channel import ControlChannel
from fxp.ftp.exceptions import (
    FTPConnectionError,
    FTPAuthenticationError,
    FTPNotConnectedError,
    FTPTimeoutError,
)
from fxp.utils.logging import get_prefixed_logger


class ConnectionState(Enum):
    """FTP connection state."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class TLSMode(Enum):
    """How TLS is negotiated on the control connection."""
    NONE = "none"
    EXPLICIT = "explicit"
    IMPLICIT = "implicit"


@dataclass
class FTPConnectionConfig:
    """FTP connection configuration."""
    host: str
    port: int = 21
    username: str = "anonymous"
    timeout: float = 5.0
    tls_mode: TLSMode = TLSMode.NONE
    insecure: bool = False
    debug: bool = False
    name: str = "FTP"

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.host:
            raise ValueError("Host is required")
        if not 1 <= self.port <= 65535:
            raise ValueError(f"Port must be between 1 and 65535, got {self.port}")
        if self.timeout <= 0:
            raise ValueError(f"Timeout must be positive, got {self.timeout}")


class _TracingMixin:
    """Logs every control line sent and received when ``trace_log`` is set."""

    trace_log: Optional[logging.LoggerAdapter] = None

    def putline(self, line):
        if self.trace_log is not None:
            shown = "PASS " + "*" * (len(line) - 5) if line[:5].upper() == "PASS " else line
            self.trace_log.debug(shown)
        super().putline(line)

    def getline(self):
        line = super().getline()
        if self.trace_log is not None:
            self.trace_log.debug(line)
        return line


class TracingFTP(_TracingMixin, FTP):
    """Plain FTP session."""


class TracingFTP_TLS(_TracingMixin, FTP_TLS):
    """Explicit FTPS session (AUTH TLS after connecting)."""


class ImplicitFTP_TLS(TracingFTP_TLS):
    """FTPS session where TLS starts with the TCP connection."""

    def __init__(self, *args, **kwargs):
        self._sock = None
        super().__init__(*args, **kwargs)

    @property
    def sock(self):
        return self._sock

    @sock.setter
    def sock(self, value):
        if value is not None and not isinstance(value, ssl.SSLSocket):
            value = self.context.wrap_socket(value, server_hostname=self.host)
        self._sock = value


def create_ssl_context(insecure: bool = False) -> ssl.SSLContext:
    """
    Build the TLS context for control connections.

    Args:
        insecure: Skip certificate and hostname verification

    Returns:
        Configured SSLContext
    """
    context = ssl.create_default_context()
    if insecure:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


class FTPConnectionManager:
    """Manages FTP connection lifecycle."""

    def __init__(self, channel_name: str = "FTP"):
        """
        Initialize the connection manager.

        Args:
            channel_name: Label for the control channel ("source", "destination")
        """
        self._channel_name = channel_name
        self._ftp: Optional[FTP] = None
        self._channel: Optional[ControlChannel] = None
        self._config: Optional[FTPConnectionConfig] = None
        self._state = ConnectionState.DISCONNECTED
        self._connected_at: Optional[datetime] = None
        self._error_message: Optional[str] = None

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """True if currently connected."""
        return self._state == ConnectionState.CONNECTED

    @property
    def config(self) -> Optional[FTPConnectionConfig]:
        """Current connection configuration."""
        return self._config

    @property
    def connected_at(self) -> Optional[datetime]:
        """Timestamp when connection was established."""
        return self._connected_at

    @property
    def error_message(self) -> Optional[str]:
        """Last error message if state is ERROR."""
        return self._error_message

    @property
    def ftp(self) -> FTP:
        """
        Get the underlying FTP object.

        Raises:
            FTPNotConnectedError: If not connected
        """
        if not self.is_connected or self._ftp is None:
            raise FTPNotConnectedError("FTP access")
        return self._ftp

    @property
    def channel(self) -> ControlChannel:
        """
        Get the control channel for this connection.

        Raises:
            FTPNotConnectedError: If not connected
        """
        ftp = self.ftp
        if self._channel is None:
            self._channel = ControlChannel(ftp, self._channel_name)
        return self._channel

    def _create_ftp(self, config: FTPConnectionConfig) -> FTP:
        """Instantiate the ftplib session class for the configured TLS mode."""
        if config.tls_mode == TLSMode.IMPLICIT:
            ftp = ImplicitFTP_TLS(context=create_ssl_context(config.insecure))
        elif config.tls_mode == TLSMode.EXPLICIT:
            ftp = TracingFTP_TLS(context=create_ssl_context(config.insecure))
        else:
            ftp = TracingFTP()

        ftp.set_debuglevel(0)
        if config.debug:
            ftp.trace_log = get_prefixed_logger(config.name)
        return ftp

    def connect(self, config: FTPConnectionConfig, password: str = "") -> None:
        """
        Establish and authenticate the FTP connection.

        Args:
            config: Connection configuration
            password: FTP password

        Raises:
            FTPConnectionError: If connection fails
            FTPAuthenticationError: If login fails
            FTPTimeoutError: If connection times out
        """
        self._config = config
        self._state = ConnectionState.CONNECTING
        self._error_message = None
        self._channel = None

        try:
            self._ftp = self._create_ftp(config)

            # Connect to server
            try:
                self._ftp.connect(
                    host=config.host,
                    port=config.port,
                    timeout=config.timeout
                )
            except socket.timeout:
                raise FTPTimeoutError("Connection", config.timeout)
            except (socket.error, OSError) as e:
                raise FTPConnectionError(config.host, config.port, e)

            # Login
            try:
                self._ftp.login(user=config.username, passwd=password)
            except error_perm as e:
                raise FTPAuthenticationError(config.username, e)

            # Protect listings the way the TLS session was negotiated
            if isinstance(self._ftp, FTP_TLS):
                self._ftp.prot_p()

            # Listings use passive mode, files move as binary images
            self._ftp.set_pasv(True)
            self._ftp.voidcmd("TYPE I")

            self._state = ConnectionState.CONNECTED
            self._connected_at = datetime.now()

        except (FTPConnectionError, FTPAuthenticationError, FTPTimeoutError) as e:
            self._state = ConnectionState.ERROR
            self._error_message = str(e)
            self._close_quietly()
            raise
        except Exception as e:
            self._state = ConnectionState.ERROR
            self._error_message = str(e)
            self._close_quietly()
            raise FTPConnectionError(config.host, config.port, e)

    def _close_quietly(self) -> None:
        if self._ftp is not None:
            try:
                self._ftp.close()
            except OSError:
                pass
        self._ftp = None

    def disconnect(self) -> None:
        """Close FTP connection gracefully."""
        if self._ftp:
            try:
                self._ftp.quit()
            except Exception:
                # Best effort close
                self._close_quietly()

        self._ftp = None
        self._channel = None
        self._state = ConnectionState.DISCONNECTED
        self._connected_at = None
