"""Control-channel reply parsing for FXP transfers.

Parses the PASV reply into a passive endpoint and classifies the lines
servers send while a server-to-server transfer is running.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List

from fxp.ftp.exceptions import MalformedResponseError


STATUS_COMMAND_OK = 200
STATUS_PASSIVE_MODE = 227

# Substrings recognised while monitoring a transfer
TRANSFER_COMPLETE_MARKER = "226"
DEFAULT_PRELIMINARY_MARKERS = ("150",)


class ResponseKind(Enum):
    """How a line read during a transfer is interpreted."""
    COMPLETE = "complete"
    PRELIMINARY = "preliminary"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class PassiveEndpoint:
    """Data endpoint announced by a server in passive mode."""
    address: str

    @property
    def octets(self) -> List[int]:
        """The six address octets ``h1..h4, p1, p2``."""
        parts = self.address.split(",")
        try:
            octets = [int(part.strip()) for part in parts]
        except ValueError:
            raise MalformedResponseError(self.address, "non-numeric passive address")
        if len(octets) != 6 or not all(0 <= o <= 255 for o in octets):
            raise MalformedResponseError(self.address, "passive address needs six octets")
        return octets

    @property
    def host(self) -> str:
        """Dotted IPv4 host."""
        return ".".join(str(o) for o in self.octets[:4])

    @property
    def port(self) -> int:
        """Data port (``p1 * 256 + p2``)."""
        p1, p2 = self.octets[4:]
        return p1 * 256 + p2


def parse_pasv_response(line: str) -> PassiveEndpoint:
    """
    Extract the passive endpoint from a PASV reply.

    Format: ``227 Entering Passive Mode (h1,h2,h3,h4,p1,p2).``
    The address is the text strictly between the first ``(`` and the
    last ``)``; it is relayed to the other server unmodified.

    Args:
        line: Full PASV reply

    Returns:
        PassiveEndpoint wrapping the raw address

    Raises:
        MalformedResponseError: If either parenthesis is missing
    """
    start = line.find("(")
    end = line.rfind(")")
    if start == -1 or end == -1 or end < start:
        raise MalformedResponseError(line)
    return PassiveEndpoint(address=line[start + 1:end])


def classify_response(
    line: str,
    preliminary_markers: Iterable[str] = DEFAULT_PRELIMINARY_MARKERS
) -> ResponseKind:
    """
    Classify a line read from a control channel during a transfer.

    Args:
        line: Response line
        preliminary_markers: Substrings treated as interim replies

    Returns:
        COMPLETE if the line contains "226", PRELIMINARY if it contains
        one of the preliminary markers, UNEXPECTED otherwise
    """
    if TRANSFER_COMPLETE_MARKER in line:
        return ResponseKind.COMPLETE
    if any(marker in line for marker in preliminary_markers):
        return ResponseKind.PRELIMINARY
    return ResponseKind.UNEXPECTED
