"""
Pulls seeder/completed/leecher counts for one info hash out of a tracker
response without decoding the whole bencoded document.

Tracker scrape bodies look like

    d5:filesd20:<hash>d8:completei5e10:downloadedi10e10:incompletei2eee

so the counters for a hash live in the dictionary right after the
length-prefixed hash key.
"""
from typing import Optional

from ..structure import ScrapeRecord

SEEDERS_KEY = b"8:completei"
COMPLETED_KEY = b"10:downloadedi"
LEECHERS_KEY = b"10:incompletei"

# Upper bound on how far past the hash key we look for the counters.
MAX_REGION = 512


class ScrapeFieldExtractor:
    """
    Locates the stats dictionary of a single info hash inside a response body.
    """
    def __init__(self, data: bytes):
        self.data = data

    def extract(self, raw_hash: bytes) -> Optional[ScrapeRecord]:
        """Returns the counters for raw_hash, or None if the hash is not in the body."""
        region = self._region(raw_hash)
        if region is None:
            return None

        return ScrapeRecord(
            seeders=self._integer(region, SEEDERS_KEY),
            completed=self._integer(region, COMPLETED_KEY),
            leechers=self._integer(region, LEECHERS_KEY),
        )

    # --------------------------
    # Low-level utilities
    # --------------------------

    def _region(self, raw_hash: bytes) -> Optional[bytes]:
        marker = b"20:" + raw_hash + b"d"
        pos = self.data.find(marker)
        if pos == -1:
            return None

        start = pos + len(marker)
        limit = min(len(self.data), start + MAX_REGION)

        # The stats dict closes with its last integer's 'e' followed by the dict's 'e'.
        end = self.data.find(b"ee", start, limit)
        if end == -1:
            return self.data[start:limit]
        return self.data[start:end + 1]

    @staticmethod
    def _integer(region: bytes, key: bytes) -> int:
        pos = region.find(key)
        if pos == -1:
            return 0

        start = pos + len(key)
        end = region.find(b"e", start)
        digits = region[start:end] if end != -1 else region[start:]

        if not digits.isdigit():
            return 0
        return int(digits)


def extract_stats(data: bytes, raw_hash: bytes) -> Optional[ScrapeRecord]:
    """
    Convenience function to extract the counters of one hash.
    """
    return ScrapeFieldExtractor(data).extract(raw_hash)
