"""Unit tests for CompletionMonitor.

Tests the dual-channel wait: success ordering, protocol errors,
timeouts, read-error handling, cancellation and getting both channels
back in step after an abandoned transfer.
"""

import contextlib
import ftplib
import socket
import threading
import time

import pytest

from fxp.ftp.channel import ControlChannel
from fxp.ftp.exceptions import (
    ChannelError,
    FXPCancelledError,
    FXPProtocolError,
    FXPTimeoutError,
)
from fxp.ftp.monitor import CompletionMonitor


def read_error(name: str) -> ChannelError:
    return ChannelError(name, "read response", ConnectionResetError("reset by peer"))


def watcher_threads() -> list:
    return [t.name for t in threading.enumerate() if t.name.startswith("fxp-watch-")]


class ReplyServer:
    """Answers control commands on the far end of a socketpair."""

    def __init__(self, replies: dict):
        self.client, self._server = socket.socketpair()
        self.replies = replies
        self.received = []
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self):
        with self._server.makefile("rb") as reader:
            for raw in reader:
                command = raw.decode("utf-8").strip()
                self.received.append(command)
                reply = self.replies.get(command.split()[0])
                if reply is not None:
                    self._server.sendall(f"{reply}\r\n".encode("utf-8"))

    def channel(self, name: str) -> ControlChannel:
        ftp = ftplib.FTP()
        ftp.sock = self.client
        ftp.file = self.client.makefile("r", encoding=ftp.encoding)
        channel = ControlChannel(ftp, name)
        channel.timeout = 2.0
        return channel

    def close(self):
        with contextlib.suppress(OSError):
            self.client.shutdown(socket.SHUT_RDWR)
        self.client.close()
        self._thread.join(timeout=2)
        self._server.close()


@pytest.fixture
def reply_server():
    servers = []

    def factory(replies: dict) -> ReplyServer:
        servers.append(ReplyServer(replies))
        return servers[-1]

    yield factory

    for server in servers:
        server.close()



class TestCompletionMonitorSuccess:
    """Tests for transfers that complete."""

    def test_both_channels_complete(self, make_channel):
        """Test destination 150 then 226 and source 226 succeed."""
        destination = make_channel("destination", "150 Opening data connection", "226 Transfer complete.")
        source = make_channel("source", "226 Transfer complete.")

        CompletionMonitor(timeout=2.0).wait(destination, source)

    def test_source_finishes_long_before_destination(self, make_channel):
        """Test completion order between channels does not matter."""
        destination = make_channel("destination", "150 Opening data connection", "226 Done", delay=0.05)
        source = make_channel("source", "150 Opening data connection", "226 Done")

        CompletionMonitor(timeout=2.0).wait(destination, source)

    def test_destination_finishes_first(self, make_channel):
        """Test the destination may report before the source."""
        destination = make_channel("destination", "226 Done")
        source = make_channel("source", "150 Opening", "150 Still opening", "226 Done", delay=0.05)

        CompletionMonitor(timeout=2.0).wait(destination, source)

    def test_waits_for_second_channel(self, make_channel):
        """Test one 226 alone is not success."""
        destination = make_channel("destination", "150 Opening", "226 Done")
        source = make_channel("source", "150 Opening")

        def finish_later():
            time.sleep(0.1)
            source.feed("226 Done")

        threading.Thread(target=finish_later, daemon=True).start()

        start = time.monotonic()
        CompletionMonitor(timeout=2.0).wait(destination, source)
        assert time.monotonic() - start >= 0.09

    def test_restores_channel_timeouts(self, make_channel):
        """Test read timeouts are widened while waiting and restored after."""
        destination = make_channel("destination", "226 Done")
        source = make_channel("source", "226 Done")
        destination.timeout = 5.0
        source.timeout = None

        CompletionMonitor(timeout=2.0).wait(destination, source)

        assert destination.timeout == 5.0
        assert source.timeout is None


class TestCompletionMonitorFailures:
    """Tests for protocol errors and timeouts."""

    def test_unexpected_status_raises_with_exact_line(self, make_channel):
        """Test a 500 reply fails the transfer carrying the line verbatim."""
        destination = make_channel("destination", "500 command not understood")
        source = make_channel("source")  # never speaks

        start = time.monotonic()
        with pytest.raises(FXPProtocolError) as exc_info:
            CompletionMonitor(timeout=5.0).wait(destination, source)

        assert exc_info.value.line == "500 command not understood"
        assert str(exc_info.value) == "500 command not understood"
        assert exc_info.value.channel == "destination"
        # Did not wait on the silent source
        assert time.monotonic() - start < 1.0

    def test_unexpected_status_on_source(self, make_channel):
        """Test a failure on the source is reported as well."""
        destination = make_channel("destination", "150 Opening")
        source = make_channel("source", "550 report.csv: No such file")

        with pytest.raises(FXPProtocolError) as exc_info:
            CompletionMonitor(timeout=5.0).wait(destination, source)

        assert exc_info.value.channel == "source"
        assert exc_info.value.line == "550 report.csv: No such file"

    def test_error_after_preliminary(self, make_channel):
        """Test an error following a 150 is still a protocol error."""
        destination = make_channel("destination", "150 Opening", "426 Connection closed; transfer aborted.")
        source = make_channel("source", "226 Done")

        with pytest.raises(FXPProtocolError, match="426"):
            CompletionMonitor(timeout=5.0).wait(destination, source)

    def test_timeout_when_226_never_arrives(self, make_channel):
        """Test the shared deadline bounds the wait."""
        destination = make_channel("destination", "150 Opening")
        source = make_channel("source", "226 Done")

        start = time.monotonic()
        with pytest.raises(FXPTimeoutError):
            CompletionMonitor(timeout=0.05).wait(destination, source)
        elapsed = time.monotonic() - start

        assert elapsed >= 0.05
        assert elapsed <= 0.15

    def test_timeout_when_both_silent(self, make_channel):
        destination = make_channel("destination")
        source = make_channel("source")

        with pytest.raises(FXPTimeoutError) as exc_info:
            CompletionMonitor(timeout=0.05).wait(destination, source)

        assert exc_info.value.timeout == 0.05


class TestCompletionMonitorReadErrors:
    """Tests for read error handling."""

    def test_read_error_is_tolerated_by_default(self, make_channel):
        """Test a read error is logged and reading continues."""
        destination = make_channel("destination", read_error("destination"), "226 Done")
        source = make_channel("source", "226 Done")

        CompletionMonitor(timeout=2.0).wait(destination, source)

    def test_persistent_read_errors_end_in_timeout(self, make_channel):
        """Test a severed channel spins until the deadline by default."""
        destination = make_channel("destination", *[read_error("destination")] * 20)
        source = make_channel("source", "226 Done")

        with pytest.raises(FXPTimeoutError):
            CompletionMonitor(timeout=0.3).wait(destination, source)

    def test_fail_fast_on_read_error(self, make_channel):
        """Test strict mode surfaces the first read error."""
        destination = make_channel("destination", read_error("destination"), "226 Done")
        source = make_channel("source", "226 Done")

        monitor = CompletionMonitor(timeout=2.0, fail_fast_on_read_error=True)
        with pytest.raises(ChannelError) as exc_info:
            monitor.wait(destination, source)

        assert exc_info.value.channel == "destination"


class TestCompletionMonitorCancellation:
    """Tests for the cancellation token."""

    def test_cancel_event_aborts_wait(self, make_channel):
        destination = make_channel("destination", "150 Opening")
        source = make_channel("source")
        cancel = threading.Event()

        threading.Timer(0.05, cancel.set).start()

        start = time.monotonic()
        with pytest.raises(FXPCancelledError):
            CompletionMonitor(timeout=5.0, cancel_event=cancel).wait(destination, source)
        assert time.monotonic() - start < 1.0

    def test_preliminary_markers_are_configurable(self, make_channel):
        destination = make_channel("destination", "125 Data connection already open.", "226 Done")
        source = make_channel("source", "125 Data connection already open.", "226 Done")

        monitor = CompletionMonitor(timeout=2.0, preliminary_markers=("125", "150"))
        monitor.wait(destination, source)


class TestCompletionMonitorResync:
    """Tests for the channels' state after an abandoned transfer."""

    SERVER_REPLIES = {
        "ABOR": "225 ABOR command successful.",
        "NOOP": "200 NOOP command successful.",
        "PASV": "227 Entering Passive Mode (1,2,3,4,5,6).",
    }

    def test_no_watcher_outlives_failure(self, make_channel, journal):
        destination = make_channel("destination", "150 Opening")
        source = make_channel("source", "550 report.csv: No such file")

        with pytest.raises(FXPProtocolError):
            CompletionMonitor(timeout=5.0).wait(destination, source)

        assert watcher_threads() == []
        assert journal == [
            ("destination", "ABOR"),
            ("destination", "NOOP"),
            ("source", "ABOR"),
            ("source", "NOOP"),
        ]

    def test_next_command_gets_its_own_reply(self, make_channel, reply_server):
        """Test a PASV after a failed transfer reads the 227, not a leftover."""
        server = reply_server(self.SERVER_REPLIES)
        destination = server.channel("destination")
        source = make_channel("source", "500 command not understood")

        with pytest.raises(FXPProtocolError):
            CompletionMonitor(timeout=5.0).wait(destination, source)

        assert watcher_threads() == []
        assert destination.send_command("PASV", expected=227) == (
            227, "227 Entering Passive Mode (1,2,3,4,5,6)."
        )
        assert server.received == ["ABOR", "NOOP", "PASV"]
        assert destination.timeout == 2.0

    def test_late_replies_are_discarded(self, make_channel, reply_server):
        """Test replies of the abandoned transfer do not leak into the next command."""
        server = reply_server(
            dict(self.SERVER_REPLIES, ABOR="426 Transfer aborted.\r\n226 ABOR command successful.")
        )
        destination = server.channel("destination")
        source = make_channel("source")

        with pytest.raises(FXPTimeoutError):
            CompletionMonitor(timeout=0.1).wait(destination, source)

        assert destination.send_command("PASV")[0] == 227
        assert destination.is_broken is False

    def test_unanswered_abort_interrupts_channel(self, make_channel, reply_server):
        """Test a server that ignores ABOR leaves a channel that refuses use."""
        server = reply_server({})
        destination = server.channel("destination")
        source = make_channel("source", "500 command not understood")
        monitor = CompletionMonitor(timeout=5.0)
        monitor.RESYNC_TIMEOUT = 0.2

        start = time.monotonic()
        with pytest.raises(FXPProtocolError):
            monitor.wait(destination, source)

        assert time.monotonic() - start < 2.0
        assert watcher_threads() == []
        assert destination.is_broken is True
        with pytest.raises(ChannelError):
            destination.send_command("PASV", expected=227)

    def test_second_wait_after_timeout(self, make_channel):
        destination = make_channel("destination", "150 Opening")
        source = make_channel("source", "226 Done")
        monitor = CompletionMonitor(timeout=0.1)

        with pytest.raises(FXPTimeoutError):
            monitor.wait(destination, source)

        destination.feed("150 Opening")
        destination.feed("226 Done")
        source.feed("226 Done")
        monitor.wait(destination, source)

        assert destination.is_broken is False
        assert source.is_broken is False
