"""FXP transfer orchestration for the FXP transfer tool.

Moves one file between two FTP servers without touching its data:

1. PASV on the destination, which opens a data port and reports it
2. PORT on the source, pointing it at that data port
3. STOR on the destination, then RETR on the source
4. Wait for both servers to report completion

See https://en.wikipedia.org/wiki/File_eXchange_Protocol
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Iterable, List, Optional

from fxp.ftp.channel import ControlChannel
from fxp.ftp.exceptions import FTPError, FXPCancelledError
from fxp.ftp.monitor import CompletionMonitor
from fxp.ftp.responses import (
    DEFAULT_PRELIMINARY_MARKERS,
    STATUS_COMMAND_OK,
    STATUS_PASSIVE_MODE,
    PassiveEndpoint,
    parse_pasv_response,
)
from fxp.utils.logging import get_prefixed_logger


DEFAULT_TRANSFER_TIMEOUT = 10 * 60.0


@dataclass
class TransferResult:
    """Result of transferring a single file."""
    path: str
    success: bool
    error_message: Optional[str] = None
    error: Optional[Exception] = None
    duration_seconds: float = 0.0


class FXPTransfer:
    """Runs FXP exchanges between a source and a destination channel.

    One transfer at a time: the monitor reads both channels, so
    interleaving two transfers would make their replies ambiguous.
    """

    def __init__(
        self,
        source: ControlChannel,
        destination: ControlChannel,
        timeout: float = DEFAULT_TRANSFER_TIMEOUT,
        preliminary_markers: Iterable[str] = DEFAULT_PRELIMINARY_MARKERS,
        fail_fast_on_read_error: bool = False,
        log: Optional[logging.Logger] = None
    ):
        """
        Initialize the transfer orchestrator.

        Args:
            source: Channel of the server that holds the file
            destination: Channel of the server that receives it
            timeout: Per-file transfer deadline in seconds
            preliminary_markers: Reply substrings treated as interim noise
            fail_fast_on_read_error: Abort on the first control read error
            log: Logger for transfer events (default "[APP]" prefixed logger)
        """
        self._source = source
        self._destination = destination
        self._cancelled = threading.Event()
        self._log = log or get_prefixed_logger("APP")
        self._monitor = CompletionMonitor(
            timeout,
            preliminary_markers=preliminary_markers,
            fail_fast_on_read_error=fail_fast_on_read_error,
            cancel_event=self._cancelled,
            log=self._log
        )

    @property
    def source(self) -> ControlChannel:
        return self._source

    @property
    def destination(self) -> ControlChannel:
        return self._destination

    @property
    def is_cancelled(self) -> bool:
        """True if cancellation was requested."""
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Abandon the running transfer and refuse new ones."""
        self._cancelled.set()

    def reset_cancel(self) -> None:
        """Reset cancellation flag for new operation."""
        self._cancelled.clear()

    def negotiate_passive(self) -> PassiveEndpoint:
        """
        Put the destination in passive mode.

        Raises:
            ChannelError: If PASV fails or is not answered with 227
            MalformedResponseError: If the reply has no address
        """
        _, line = self._destination.send_command("PASV", expected=STATUS_PASSIVE_MODE)
        return parse_pasv_response(line)

    def relay_port(self, endpoint: PassiveEndpoint) -> None:
        """
        Point the source at the destination's passive endpoint.

        Raises:
            ChannelError: If PORT fails or is not answered with 200
        """
        self._source.send_command(f"PORT {endpoint.address}", expected=STATUS_COMMAND_OK)

    def initiate(self, path: str) -> None:
        """
        Issue STOR on the destination, then RETR on the source.

        The destination must be listening before the source pushes. The
        preliminary replies are left for the completion monitor.

        Raises:
            ChannelError: If either command cannot be sent
        """
        self._destination.post_command(f"STOR {path}")
        self._source.post_command(f"RETR {path}")

    def transfer(self, path: str) -> None:
        """
        Run the full exchange for one file.

        Args:
            path: Remote path, identical on both servers

        Raises:
            FTPError: Any failure; nothing is retried
        """
        if self._cancelled.is_set():
            raise FXPCancelledError(path)

        endpoint = self.negotiate_passive()
        self.relay_port(endpoint)
        self.initiate(path)
        self._monitor.wait(self._destination, self._source)

    def transfer_file(self, path: str) -> TransferResult:
        """
        Create the destination directories and transfer one file.

        Args:
            path: Remote path, identical on both servers

        Returns:
            TransferResult with success/failure status
        """
        start_time = time.monotonic()
        self._destination.make_parent_directories(path)

        self._log.info(f"initiating FXP transfer, filename:{path}")
        try:
            self.transfer(path)
        except FTPError as e:
            duration = time.monotonic() - start_time
            self._log.error(f"FXP transfer failed, filename={path}, error={e}")
            return TransferResult(
                path=path,
                success=False,
                error_message=str(e),
                error=e,
                duration_seconds=duration
            )

        duration = time.monotonic() - start_time
        self._log.info(f"FXP transfer completed, filename={path}, timeTaken={duration:.3f}s")
        return TransferResult(path=path, success=True, duration_seconds=duration)


def get_batch_summary(results: List[TransferResult]) -> dict:
    """
    Get summary statistics for a batch of transfers.

    Args:
        results: List of transfer results

    Returns:
        Dictionary with summary statistics
    """
    successful = [r for r in results if r.success]
    failed = [r for r in results if not r.success]
    total_time = sum(r.duration_seconds for r in results)

    return {
        "total": len(results),
        "successful": len(successful),
        "failed": len(failed),
        "duration_seconds": total_time,
        "failures": [(r.path, r.error_message) for r in failed]
    }
