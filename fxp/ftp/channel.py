"""Control channel primitives for FXP transfers.

Wraps one authenticated ftplib session with the handful of operations
an FXP exchange needs: sending a command and reading its reply, posting
a command without waiting, reading single reply lines, listing a
directory and creating directories. A channel left mid-reply by an
abandoned transfer can be interrupted, after which it refuses all use.
"""

import ftplib
import logging
import posixpath
import socket
from dataclasses import dataclass
from enum import Enum
from ftplib import FTP, error_perm
from typing import Iterable, List, Optional, Tuple

from fxp.ftp.exceptions import ChannelError, FTPListingError, FTPReplyError

logger = logging.getLogger("fxp.channel")

# Replies meaning "MLSD is not implemented here"
MLSD_UNSUPPORTED_CODES = ("500", "502")


class EntryType(Enum):
    """Kind of a remote directory entry."""
    FILE = "file"
    DIRECTORY = "directory"


@dataclass
class RemoteEntry:
    """A single entry returned by a directory listing."""
    name: str
    type: EntryType

    @property
    def is_file(self) -> bool:
        return self.type == EntryType.FILE

    @property
    def is_directory(self) -> bool:
        return self.type == EntryType.DIRECTORY


def parse_list_line(line: str) -> Optional[RemoteEntry]:
    """
    Parse one Unix-style LIST line.

    Args:
        line: e.g. "drwxr-xr-x  2 root root 4096 Jan  1 12:00 Game Dir"

    Returns:
        RemoteEntry, or None for links, special entries and unparseable lines
    """
    parts = line.split(None, 8)
    if len(parts) < 9:
        return None

    name = parts[8]
    if name in (".", ".."):
        return None

    if line.startswith("d"):
        return RemoteEntry(name=name, type=EntryType.DIRECTORY)
    if line.startswith("-"):
        return RemoteEntry(name=name, type=EntryType.FILE)
    return None


def parse_list_lines(lines: Iterable[str]) -> List[RemoteEntry]:
    """Parse LIST output, dropping lines that are not files or directories."""
    entries = []
    for line in lines:
        entry = parse_list_line(line)
        if entry is not None:
            entries.append(entry)
    return entries


def directory_prefixes(directory: str) -> List[str]:
    """
    Decompose a directory path into its successive prefixes.

    "a/c" gives ["a", "a/c"]; "/x/y" gives ["/x", "/x/y"]. Empty and "."
    segments are skipped.
    """
    current = "/" if directory.startswith("/") else ""
    prefixes = []
    for segment in directory.split("/"):
        if segment in ("", "."):
            continue
        current = posixpath.join(current, segment) if current else segment
        prefixes.append(current)
    return prefixes


class ControlChannel:
    """Command/response access to one authenticated FTP control connection.

    The channel borrows the ftplib session; it never closes it.
    """

    def __init__(
        self,
        ftp: FTP,
        name: str,
        log: Optional[logging.Logger] = None
    ):
        """
        Initialize the channel.

        Args:
            ftp: Connected and logged-in ftplib session
            name: Label used in errors and logs ("source", "destination")
            log: Logger for channel events (default module logger)
        """
        self._ftp = ftp
        self._name = name
        self._log = log or logger
        self._interrupted = False

    @property
    def name(self) -> str:
        """Channel label."""
        return self._name

    @property
    def ftp(self) -> FTP:
        """The underlying ftplib session."""
        return self._ftp

    @property
    def timeout(self) -> Optional[float]:
        """Read/write timeout of the control socket in seconds."""
        sock = self._ftp.sock
        return sock.gettimeout() if sock is not None else None

    @timeout.setter
    def timeout(self, value: Optional[float]) -> None:
        sock = self._ftp.sock
        if sock is not None:
            sock.settimeout(value)

    @property
    def is_broken(self) -> bool:
        """True once the channel has been interrupted."""
        return self._interrupted

    def interrupt(self) -> None:
        """
        Take the channel out of service.

        Shuts the control socket down so a read blocked on it returns at
        once. Every later command, read or listing raises ChannelError.
        """
        self._interrupted = True
        sock = self._ftp.sock
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            self._log.debug(f"shutdown of {self._name} control socket failed: {e}")

    def _ensure_usable(self, operation: str) -> None:
        if self._interrupted:
            raise ChannelError(
                self._name,
                operation,
                ConnectionAbortedError("control channel closed after an unfinished transfer")
            )

    def send_command(self, command: str, expected: Optional[int] = None) -> Tuple[int, str]:
        """
        Send a command and read its complete reply.

        Args:
            command: Command line without CRLF
            expected: Required status code, if any

        Returns:
            Tuple of (status_code, reply_text)

        Raises:
            ChannelError: On I/O failure
            FTPReplyError: If the status differs from ``expected``
        """
        self._ensure_usable(command)
        try:
            self._ftp.putcmd(command)
            line = self._ftp.getmultiline()
        except ftplib.all_errors as e:
            raise ChannelError(self._name, command, e)

        code = int(line[:3]) if line[:3].isdigit() else 0
        if expected is not None and code != expected:
            raise FTPReplyError(self._name, command, expected, line)
        return code, line

    def post_command(self, command: str) -> None:
        """
        Send a command without reading any reply.

        Raises:
            ChannelError: On I/O failure
        """
        self._ensure_usable(command)
        try:
            self._ftp.putcmd(command)
        except ftplib.all_errors as e:
            raise ChannelError(self._name, command, e)

    def read_response_line(self) -> str:
        """
        Read a single reply line (blocking, bounded by the socket timeout).

        Raises:
            ChannelError: On I/O failure or closed connection
        """
        self._ensure_usable("read response")
        try:
            return self._ftp.getline()
        except ftplib.all_errors as e:
            raise ChannelError(self._name, "read response", e)

    def list_entries(self, path: str) -> List[RemoteEntry]:
        """
        List the files and subdirectories of a remote directory.

        Uses MLSD, falling back to a parsed LIST when the server does not
        implement MLSD.

        Args:
            path: Remote directory

        Returns:
            Entries in server order

        Raises:
            FTPListingError: If the directory cannot be listed
        """
        if self._interrupted:
            raise FTPListingError(path, ConnectionAbortedError("control channel closed"))
        try:
            return self._list(path)
        finally:
            # ftplib switches to TYPE A for listings
            self._restore_binary()

    def _list(self, path: str) -> List[RemoteEntry]:
        try:
            return self._list_mlsd(path)
        except error_perm as e:
            if not str(e).startswith(MLSD_UNSUPPORTED_CODES):
                raise FTPListingError(path, e)
            self._log.debug(f"MLSD not supported on {self._name}, falling back to LIST")
        except ftplib.all_errors as e:
            raise FTPListingError(path, e)

        lines: List[str] = []
        try:
            self._ftp.dir(path, lines.append)
        except ftplib.all_errors as e:
            raise FTPListingError(path, e)
        return parse_list_lines(lines)

    def _restore_binary(self) -> None:
        try:
            self._ftp.voidcmd("TYPE I")
        except ftplib.all_errors as e:
            self._log.debug(f"TYPE I on {self._name} failed: {e}")

    def _list_mlsd(self, path: str) -> List[RemoteEntry]:
        entries = []
        for name, facts in self._ftp.mlsd(path):
            kind = facts.get("type", "").lower()
            if kind == "file":
                entries.append(RemoteEntry(name=name, type=EntryType.FILE))
            elif kind == "dir":
                entries.append(RemoteEntry(name=name, type=EntryType.DIRECTORY))
        return entries

    def make_directory(self, path: str) -> bool:
        """
        Create a remote directory, ignoring any error.

        "Already exists" is not told apart from other failures here.

        Returns:
            True if the server created the directory
        """
        if self._interrupted:
            return False
        try:
            self._ftp.mkd(path)
            return True
        except ftplib.all_errors as e:
            self._log.debug(f"mkdir '{path}' on {self._name} ignored: {e}")
            return False

    def make_parent_directories(self, file_path: str) -> None:
        """Create every directory leading up to ``file_path``."""
        for prefix in directory_prefixes(posixpath.dirname(file_path)):
            self.make_directory(prefix)
