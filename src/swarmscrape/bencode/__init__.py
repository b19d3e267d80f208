"""
Minimal bencode field extraction for tracker scrape and announce responses.
"""
from .extractor import ScrapeFieldExtractor, extract_stats

__all__ = ['ScrapeFieldExtractor', 'extract_stats']
