"""Dual-channel completion monitor for FXP transfers.

Once STOR and RETR have been issued, the only view of the transfer is
the chatter on the two control channels. Each server reports "226" on
its own schedule, so each channel is watched independently and the
transfer is done only when both have reported it.
"""

import logging
import queue
import threading
import time
from typing import Dict, Iterable, Optional, Set, Tuple

from fxp.ftp.channel import ControlChannel
from fxp.ftp.exceptions import (
    ChannelError,
    FXPCancelledError,
    FXPProtocolError,
    FXPTimeoutError,
)
from fxp.ftp.responses import (
    DEFAULT_PRELIMINARY_MARKERS,
    STATUS_COMMAND_OK,
    ResponseKind,
    classify_response,
)
from fxp.utils.threading import TaskResult, TaskStatus, ThreadedTask

logger = logging.getLogger("fxp.monitor")

# Returned by a watcher that read the reply to the resync NOOP
_SYNCED = object()


class CompletionMonitor:
    """Waits until both control channels report transfer completion.

    One watcher thread reads each channel. The verdict is decided on the
    calling thread from the first of: both watchers done, a watcher
    failed, the shared deadline passed, or cancellation was requested.
    Watchers never outlive ``wait``.
    """

    # Granularity of deadline and cancellation checks (seconds)
    POLL_INTERVAL = 0.05

    # Pause after a tolerated read error before reading again (seconds)
    READ_ERROR_BACKOFF = 0.1

    # Time each server gets to answer ABOR and NOOP after an abandoned
    # transfer (seconds)
    RESYNC_TIMEOUT = 5.0

    def __init__(
        self,
        timeout: float,
        preliminary_markers: Iterable[str] = DEFAULT_PRELIMINARY_MARKERS,
        fail_fast_on_read_error: bool = False,
        cancel_event: Optional[threading.Event] = None,
        log: Optional[logging.Logger] = None
    ):
        """
        Initialize the monitor.

        Args:
            timeout: Overall transfer deadline in seconds
            preliminary_markers: Reply substrings treated as interim noise
            fail_fast_on_read_error: Fail on the first read error instead
                of logging it and reading again
            cancel_event: Optional external cancellation token
            log: Logger for monitor events
        """
        self._timeout = timeout
        self._preliminary_markers = tuple(preliminary_markers)
        self._fail_fast = fail_fast_on_read_error
        self._cancel_event = cancel_event
        self._log = log or logger

    @property
    def timeout(self) -> float:
        """Overall transfer deadline in seconds."""
        return self._timeout

    def wait(self, destination: ControlChannel, source: ControlChannel) -> None:
        """
        Block until both channels report completion.

        No watcher is left reading either channel when this returns. If
        the transfer is abandoned, both channels are brought back to a
        command/reply boundary first (see ``_resynchronize``).

        Args:
            destination: Channel that received STOR
            source: Channel that received RETR

        Raises:
            FXPProtocolError: A channel sent an unexpected status line
            FXPTimeoutError: The deadline passed first
            FXPCancelledError: The cancellation event was set
            ChannelError: A read failed and fail-fast mode is on
        """
        channels = (destination, source)
        outcomes: "queue.Queue[Tuple[str, TaskResult]]" = queue.Queue()
        draining = threading.Event()
        saved_timeouts = self._widen_timeouts(channels)

        watchers: Dict[str, ThreadedTask] = {}
        for channel in channels:
            watchers[channel.name] = ThreadedTask(
                self._watch,
                args=(channel, draining),
                on_complete=lambda result, name=channel.name: outcomes.put((name, result)),
                name=f"fxp-watch-{channel.name}"
            )
            watchers[channel.name].start()

        try:
            self._await_completion(outcomes, set(watchers))
            for task in watchers.values():
                task.wait()
        except Exception:
            self._resynchronize(channels, watchers, draining)
            raise
        finally:
            self._restore_timeouts(saved_timeouts)

    def _await_completion(self, outcomes: queue.Queue, pending: Set[str]) -> None:
        deadline = time.monotonic() + self._timeout
        while pending:
            if self._cancel_event is not None and self._cancel_event.is_set():
                raise FXPCancelledError()

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self._log.warning("reached fxp transfer timeout")
                raise FXPTimeoutError(self._timeout)

            try:
                name, result = outcomes.get(timeout=min(remaining, self.POLL_INTERVAL))
            except queue.Empty:
                continue

            if result.status == TaskStatus.FAILED:
                raise result.error
            pending.discard(name)
            self._log.debug(f"{name} reported transfer complete")

    def _watch(self, channel: ControlChannel, draining: threading.Event):
        """
        Read one channel until it reports completion. Runs on a worker thread.

        Once ``draining`` is set the lines belong to an abandoned transfer:
        they are discarded up to the reply to the resync NOOP.
        """
        while True:
            try:
                line = channel.read_response_line()
            except ChannelError as e:
                if self._fail_fast or draining.is_set():
                    raise
                self._log.warning(f"error on receiving message from {channel.name}, error: {e}")
                draining.wait(self.READ_ERROR_BACKOFF)
                continue

            if draining.is_set():
                if is_sync_reply(line):
                    return _SYNCED
                self._log.debug(f"discarded {channel.name} reply: {line}")
                continue

            kind = classify_response(line, self._preliminary_markers)
            if kind == ResponseKind.COMPLETE:
                return line
            if kind == ResponseKind.UNEXPECTED:
                raise FXPProtocolError(channel.name, line)

    def _resynchronize(
        self,
        channels: Tuple[ControlChannel, ...],
        watchers: Dict[str, ThreadedTask],
        draining: threading.Event
    ) -> None:
        """
        Bring both channels of an abandoned transfer back in step.

        Each server is sent ABOR and then NOOP. Every line up to the NOOP's
        200 reply belongs to the abandoned transfer and is discarded, by
        the watcher if it is still reading, otherwise on this thread. A
        channel that gets no such reply within RESYNC_TIMEOUT is
        interrupted, which also ends a read its watcher is blocked in.
        """
        draining.set()
        for channel in channels:
            try:
                channel.post_command("ABOR")
                channel.post_command("NOOP")
            except ChannelError as e:
                self._log.warning(f"could not abort transfer on {channel.name}, error: {e}")
                channel.interrupt()

        for channel in channels:
            deadline = time.monotonic() + self.RESYNC_TIMEOUT
            task = watchers[channel.name]
            try:
                outcome = task.wait(max(0.0, deadline - time.monotonic()))
            except TimeoutError:
                self._log.warning(f"{channel.name} did not answer ABOR, closing its control channel")
                channel.interrupt()
                try:
                    task.wait(self.RESYNC_TIMEOUT)
                except TimeoutError:
                    self._log.error(f"watcher of {channel.name} still blocked after interrupt")
                continue

            if outcome.result is not _SYNCED and not channel.is_broken:
                self._drain(channel, deadline)

    def _drain(self, channel: ControlChannel, deadline: float) -> None:
        """Discard lines on the calling thread until the NOOP reply."""
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self._log.warning(f"{channel.name} did not answer ABOR, closing its control channel")
                channel.interrupt()
                return

            channel.timeout = remaining
            try:
                line = channel.read_response_line()
            except ChannelError as e:
                self._log.warning(f"error on receiving message from {channel.name}, error: {e}")
                channel.interrupt()
                return

            if is_sync_reply(line):
                return
            self._log.debug(f"discarded {channel.name} reply: {line}")

    def _widen_timeouts(self, channels) -> Dict[str, Tuple[ControlChannel, Optional[float]]]:
        """Let reads block up to the transfer deadline instead of the dial timeout."""
        saved = {}
        for channel in channels:
            saved[channel.name] = (channel, channel.timeout)
            channel.timeout = self._timeout + 1.0
        return saved

    def _restore_timeouts(self, saved: Dict[str, Tuple[ControlChannel, Optional[float]]]) -> None:
        for channel, previous in saved.values():
            channel.timeout = previous


def is_sync_reply(line: str) -> bool:
    """True for the single-line 200 that answers the resync NOOP."""
    return line[:3] == str(STATUS_COMMAND_OK) and line[3:4] != "-"
