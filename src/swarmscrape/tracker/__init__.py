"""
Tracker package for querying BitTorrent trackers for swarm statistics.
"""
from .http_tracker import HTTPTrackerClient
from .tracker_client import ScrapeOutcome, TrackerClient
from .udp_tracker import UDPTrackerClient
from .utils import Scheme, TrackerAddress, parse_tracker_url

__all__ = [
    'HTTPTrackerClient',
    'UDPTrackerClient',
    'TrackerClient',
    'ScrapeOutcome',
    'Scheme',
    'TrackerAddress',
    'parse_tracker_url',
]
