"""
swarmscrape: query BitTorrent trackers for seeder, leecher and completed counts.
"""
from .errors import ErrorLog
from .scraper import Scraper
from .structure import ScrapeRecord

__all__ = ['Scraper', 'ScrapeRecord', 'ErrorLog']
