"""
Public entry point: scrape a batch of info hashes against a list of trackers.
"""
import asyncio
import numbers
from typing import List, Optional, Union

from .errors import ErrorLog
from .structure import ResultMap
from .tracker.tracker_client import DEFAULT_PEER_PORT, DEFAULT_TIMEOUT, TrackerClient


class Scraper:
    """
    Scrapes UDP and HTTP(S) trackers for seeders, leechers and completed
    downloads.

    Each call starts from scratch. Diagnostics of the most recent call are
    available through has_errors() and get_errors().

        scraper = Scraper()
        results = scraper.scrape("0123...", ["udp://tracker.example:6969"])
    """
    VERSION = "0.5.0"

    def __init__(self, port=DEFAULT_PEER_PORT):
        self.port = port
        self._errors = ErrorLog()

    def scrape(self, hashes: Union[str, List[str]], trackers: Union[str, List[str]],
               max_trackers: Optional[int] = None, timeout=DEFAULT_TIMEOUT,
               announce: bool = False) -> ResultMap:
        """
        Blocking scrape. Must not be called from inside a running event loop;
        use scrape_async() there.
        """
        return asyncio.run(self.scrape_async(hashes, trackers, max_trackers, timeout, announce))

    async def scrape_async(self, hashes: Union[str, List[str]], trackers: Union[str, List[str]],
                           max_trackers: Optional[int] = None, timeout=DEFAULT_TIMEOUT,
                           announce: bool = False) -> ResultMap:
        bad_timeout = (
            isinstance(timeout, bool)
            or not isinstance(timeout, numbers.Real)
            or timeout <= 0
        )
        errors = ErrorLog()
        if bad_timeout:
            errors.add("Timeout must be a positive number. Using default value.")
            timeout = DEFAULT_TIMEOUT
        self._errors = errors

        client = TrackerClient(timeout=timeout, announce=announce, port=self.port)
        results, _ = await client.scrape(hashes, trackers, max_trackers, errors)
        return results

    def has_errors(self) -> bool:
        return len(self._errors) > 0

    def get_errors(self) -> List[str]:
        return self._errors.entries
