"""
Data structures shared by the tracker clients.
"""
from typing import Dict, NamedTuple

__all__ = [
    "ScrapeRecord",
    "ResultMap",
]


class ScrapeRecord(NamedTuple):
    """Swarm statistics for one info hash."""
    seeders: int
    completed: int
    leechers: int


# Keyed by the hex string the caller passed in.
ResultMap = Dict[str, ScrapeRecord]
