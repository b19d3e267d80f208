"""
Error types and the per-call diagnostic log.
"""
import logging
from typing import Iterator, List

logger = logging.getLogger(__name__)


class ScrapeError(Exception):
    """Base class for all scraping errors."""
    pass


class InfoHashRangeError(ScrapeError):
    """Raised when the number of valid info hashes is outside 1..64."""
    pass


class TrackerError(ScrapeError):
    """Base class for problems with a single tracker."""
    pass


class InvalidTrackerError(TrackerError):
    """Tracker URL has no usable scheme or host."""
    pass


class UnsupportedProtocolError(TrackerError):
    """Tracker URL uses a scheme other than udp, http or https."""
    pass


class TrackerConnectionError(TrackerError):
    """The tracker could not be reached or stopped answering."""
    pass


class TrackerResponseError(TrackerError):
    """The tracker answered with something we cannot use."""
    pass


class ErrorLog:
    """
    Append-only list of human readable diagnostics collected during one scrape.
    Entries are also forwarded to the module logger.
    """
    def __init__(self):
        self._entries: List[str] = []

    def add(self, message: str):
        self._entries.append(message)
        logger.info(message)

    @property
    def entries(self) -> List[str]:
        return list(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self):
        return len(self._entries)

    def __repr__(self):
        return f"ErrorLog({self._entries!r})"
