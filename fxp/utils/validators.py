"""Input validators for the FXP transfer tool.

Provides validation functions for configuration values like server
addresses, ports, remote paths and duration strings.
"""

import re
from typing import Optional, Tuple


DEFAULT_FTP_PORT = 21

# IPv4 address pattern
IPV4_PATTERN = re.compile(
    r'^(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}'
    r'(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)$'
)

# Hostname pattern (simplified)
HOSTNAME_PATTERN = re.compile(
    r'^(?=.{1,253}$)(?!-)[A-Za-z0-9-]{1,63}(?<!-)(\.[A-Za-z0-9-]{1,63})*$'
)

# One "<number><unit>" component of a duration such as "1m30s"
DURATION_COMPONENT = re.compile(r'(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)')

DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def validate_ip_address(ip: str) -> Tuple[bool, Optional[str]]:
    """
    Validate an IPv4 address.

    Args:
        ip: IP address string to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not ip or not ip.strip():
        return False, "IP address is required"

    ip = ip.strip()

    if IPV4_PATTERN.match(ip):
        return True, None

    return False, f"Invalid IP address format: {ip}"


def validate_hostname(hostname: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a hostname.

    Args:
        hostname: Hostname string to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not hostname or not hostname.strip():
        return False, "Hostname is required"

    hostname = hostname.strip()

    if HOSTNAME_PATTERN.match(hostname):
        return True, None

    return False, f"Invalid hostname format: {hostname}"


def validate_host(host: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a host (IP address or hostname).

    Args:
        host: Host string to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not host or not host.strip():
        return False, "Host is required"

    host = host.strip()

    is_valid_ip, _ = validate_ip_address(host)
    if is_valid_ip:
        return True, None

    is_valid_hostname, _ = validate_hostname(host)
    if is_valid_hostname:
        return True, None

    return False, f"Invalid host: {host}. Must be a valid IP address or hostname."


def validate_port(port: int) -> Tuple[bool, Optional[str]]:
    """
    Validate a port number.

    Args:
        port: Port number to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(port, int):
        try:
            port = int(port)
        except (ValueError, TypeError):
            return False, "Port must be a number"

    if port < 1 or port > 65535:
        return False, f"Port must be between 1 and 65535, got {port}"

    return True, None


def split_address(address: str, default_port: int = DEFAULT_FTP_PORT) -> Tuple[str, int]:
    """
    Split a ``host[:port]`` server address.

    Args:
        address: Address such as "ftp.example.com:2121"
        default_port: Port used when the address has none

    Returns:
        Tuple of (host, port)

    Raises:
        ValueError: If the port part is not a number
    """
    address = (address or "").strip()
    host, sep, port = address.rpartition(":")
    if not sep:
        return address, default_port
    if not port.isdigit():
        raise ValueError(f"Port must be a number, got '{port}'")
    return host, int(port)


def validate_address(address: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a ``host[:port]`` server address.

    Args:
        address: Address string to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not address or not address.strip():
        return False, "Address is required"

    try:
        host, port = split_address(address)
    except ValueError as e:
        return False, str(e)

    is_valid, error = validate_host(host)
    if not is_valid:
        return False, error

    return validate_port(port)


def validate_remote_path(path: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a remote file or directory path.

    Args:
        path: Remote path to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not path or not path.strip():
        return False, "Remote path is required"

    if path.strip() != path:
        return False, f"Remote path has leading or trailing whitespace: '{path}'"

    if "\r" in path or "\n" in path:
        return False, "Remote path cannot contain line breaks"

    return True, None


def parse_duration(value: str) -> float:
    """
    Parse a duration string such as "10m", "5s", "1h2m" or "250ms".

    Args:
        value: Duration string; a bare "0" is accepted

    Returns:
        Duration in seconds

    Raises:
        ValueError: If the string is not a valid duration
    """
    if value is None:
        raise ValueError("Duration is required")

    text = str(value).strip()
    if text == "0":
        return 0.0
    if not text:
        raise ValueError("Duration is required")

    total = 0.0
    position = 0
    for match in DURATION_COMPONENT.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * DURATION_UNITS[match.group(2)]
        position = match.end()

    if position != len(text):
        raise ValueError(f"Invalid duration: '{value}'")

    return total
