"""FTP and FXP exceptions for the FXP transfer tool.

Custom exception hierarchy for control-channel and transfer operations
to provide clear error handling and user-friendly messages.
"""

from typing import Optional


class FTPError(Exception):
    """Base exception for all FTP-related errors."""

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class FTPConnectionError(FTPError):
    """Failed to establish FTP connection."""

    def __init__(self, host: str, port: int, original_error: Exception = None):
        self.host = host
        self.port = port
        message = f"Failed to connect to {host}:{port}"
        super().__init__(message, original_error)


class FTPAuthenticationError(FTPError):
    """FTP authentication (login) failed."""

    def __init__(self, username: str, original_error: Exception = None):
        self.username = username
        message = f"Authentication failed for user '{username}'"
        super().__init__(message, original_error)


class FTPNotConnectedError(FTPError):
    """Operation attempted without active FTP connection."""

    def __init__(self, operation: str = "Operation"):
        message = f"{operation} requires an active FTP connection"
        super().__init__(message)


class FTPTimeoutError(FTPError):
    """FTP operation timed out."""

    def __init__(self, operation: str = "Operation", timeout: float = 30):
        self.timeout = timeout
        message = f"{operation} timed out after {timeout:g} seconds"
        super().__init__(message)


class ChannelError(FTPError):
    """I/O or connection-level fault on a control channel send or read."""

    def __init__(self, channel: str, operation: str, original_error: Exception = None):
        self.channel = channel
        self.operation = operation
        message = f"{channel}: {operation} failed"
        super().__init__(message, original_error)


class FTPReplyError(ChannelError):
    """A command was answered with an unexpected status code."""

    def __init__(self, channel: str, command: str, expected: int, line: str):
        self.command = command
        self.expected = expected
        self.line = line
        super().__init__(channel, f"'{command}' (expected {expected}, got '{line}')")


class MalformedResponseError(FTPError):
    """A server reply is missing the delimiters required to parse it."""

    def __init__(self, line: str, reason: str = "invalid PASV response format"):
        self.line = line
        super().__init__(f"{reason}: '{line}'")


class FXPProtocolError(FTPError):
    """A control channel reported an unexpected status while transferring.

    The offending line is kept verbatim in ``line``.
    """

    def __init__(self, channel: str, line: str):
        self.channel = channel
        self.line = line
        super().__init__(line)


class FXPTimeoutError(FTPTimeoutError):
    """Both servers did not report completion before the transfer deadline."""

    def __init__(self, timeout: float):
        super().__init__("FXP transfer", timeout)


class FXPCancelledError(FTPError):
    """Transfer abandoned because cancellation was requested."""

    def __init__(self, path: Optional[str] = None):
        self.path = path
        message = f"Transfer of '{path}' cancelled" if path else "Transfer cancelled"
        super().__init__(message)


class FTPPathError(FTPError):
    """FTP path operation failed (change directory, list, etc.)."""

    def __init__(self, path: str, operation: str, original_error: Exception = None):
        self.path = path
        self.operation = operation
        message = f"Failed to {operation} path '{path}'"
        super().__init__(message, original_error)


class FTPListingError(FTPPathError):
    """Directory listing failed during replication."""

    def __init__(self, path: str, original_error: Exception = None):
        super().__init__(path, "list", original_error)
