"""
Utility functions for tracker communication.
"""
import random
import re
import string
import urllib.parse
from enum import Enum
from typing import NamedTuple

from ..errors import InvalidTrackerError, UnsupportedProtocolError

PEER_ID_PREFIX = "-SW0100-"

_PASSKEY_RE = re.compile(r"[a-z0-9]{32}", re.IGNORECASE)


class Scheme(Enum):
    """Tracker protocols we know how to talk to."""
    UDP = "udp"
    HTTP = "http"
    HTTPS = "https"

    @property
    def default_port(self) -> int:
        return 443 if self is Scheme.HTTPS else 80


class TrackerAddress(NamedTuple):
    scheme: Scheme
    host: str
    port: int
    passkey: str = ""

    @property
    def netloc(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{host}:{self.port}"

    @property
    def base_url(self) -> str:
        """scheme://host:port plus the passkey path segment, if any."""
        return f"{self.scheme.value}://{self.netloc}{self.passkey}"


def parse_tracker_url(url: str) -> TrackerAddress:
    """
    Parses a tracker URL into a TrackerAddress.

    Raises InvalidTrackerError when the scheme or host is missing or the
    port is garbage, and UnsupportedProtocolError for unknown schemes.
    """
    try:
        parsed = urllib.parse.urlparse(url.strip())
        host = parsed.hostname
        port = parsed.port
    except (AttributeError, ValueError) as exc:
        raise InvalidTrackerError(f"Skipping invalid tracker ({url}).") from exc

    if not parsed.scheme or not host:
        raise InvalidTrackerError(f"Skipping invalid tracker ({url}).")

    try:
        scheme = Scheme(parsed.scheme)
    except ValueError as exc:
        raise UnsupportedProtocolError(f"Unsupported protocol ({parsed.scheme}://{host}).") from exc

    match = _PASSKEY_RE.search(parsed.path)
    passkey = "/" + match.group(0) if match else ""

    return TrackerAddress(scheme, host, port or scheme.default_port, passkey)


def pct_encode(b: bytes) -> str:
    # Trackers expect every byte of a binary field as %HH
    return ''.join(f'%{byte:02X}' for byte in b)


def generate_peer_id() -> bytes:
    """
    Generates a 20-byte peer id: a fixed client prefix plus 12 random
    alphanumeric characters.
    """
    suffix = ''.join(
        random.choice(string.ascii_letters + string.digits)
        for _ in range(12)
    )
    return (PEER_ID_PREFIX + suffix).encode()
