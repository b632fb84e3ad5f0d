"""Directory replication for the FXP transfer tool.

Walks a source directory tree depth-first and transfers every file it
finds to the same path on the destination.
"""

import logging
import posixpath
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional

from fxp.ftp.channel import RemoteEntry
from fxp.ftp.exceptions import FTPListingError
from fxp.ftp.transfer import FXPTransfer, TransferResult
from fxp.utils.logging import get_prefixed_logger


@dataclass
class _DirectoryFrame:
    """A directory being walked and the entries not yet visited."""
    path: str
    entries: Iterator[RemoteEntry]


class DirectoryReplicator:
    """Replicates a source directory tree onto the destination.

    Entries are processed in listing order and subdirectories are
    entered as soon as they are met. A failed file transfer abandons the
    rest of its directory; the parent directory carries on. A directory
    that cannot be listed is skipped. Completed transfers are kept.
    """

    def __init__(self, transfer: FXPTransfer, log: Optional[logging.Logger] = None):
        """
        Initialize the replicator.

        Args:
            transfer: Orchestrator bound to the source/destination channels
            log: Logger for replication events
        """
        self._transfer = transfer
        self._log = log or get_prefixed_logger("APP")

    def replicate(
        self,
        directory: str,
        on_file_complete: Optional[Callable[[TransferResult], None]] = None
    ) -> List[TransferResult]:
        """
        Transfer every file below ``directory``.

        Args:
            directory: Source directory path
            on_file_complete: Optional callback after each file

        Returns:
            One TransferResult per attempted file or unlistable directory
        """
        results: List[TransferResult] = []
        stack: List[_DirectoryFrame] = []
        self._enter(directory, stack, results)

        while stack:
            if self._transfer.is_cancelled:
                self._log.warning(f"replication of {directory} cancelled")
                break

            frame = stack[-1]
            entry = next(frame.entries, None)
            if entry is None:
                stack.pop()
                continue

            path = posixpath.join(frame.path, entry.name)
            if entry.is_directory:
                self._enter(path, stack, results)
                continue

            result = self._transfer.transfer_file(path)
            results.append(result)
            if on_file_complete:
                on_file_complete(result)

            if not result.success:
                self._log.warning(f"skipping remaining entries of {frame.path}")
                stack.pop()

        return results

    def _enter(
        self,
        directory: str,
        stack: List[_DirectoryFrame],
        results: List[TransferResult]
    ) -> None:
        """List ``directory`` and push it on the walk stack."""
        try:
            entries = self._transfer.source.list_entries(directory)
        except FTPListingError as e:
            self._log.error(f"error on listing entries, directory={directory}, error={e}")
            results.append(TransferResult(
                path=directory,
                success=False,
                error_message=str(e),
                error=e
            ))
            return

        stack.append(_DirectoryFrame(path=directory, entries=iter(entries)))
