import asyncio
import logging
from typing import Dict, List

import aiohttp

from ..bencode import ScrapeFieldExtractor
from ..errors import ErrorLog, TrackerConnectionError, TrackerResponseError
from ..infohash import InfoHash
from ..structure import ScrapeRecord
from .utils import TrackerAddress, pct_encode

logger = logging.getLogger(__name__)

SCRAPE_PREAMBLE = b"d5:filesd20:"
ANNOUNCE_PREAMBLE = b"d8:completei"
# Some trackers answer unknown hashes with this instead of an error
ANNOUNCE_EMPTY_SWARM = b"d8:completei0e10:downloadedi0e10:incompletei1e"


def build_scrape_url(address: TrackerAddress, info_hashes: List[InfoHash]) -> str:
    query = "&".join(f"info_hash={pct_encode(h.raw)}" for h in info_hashes)
    return f"{address.base_url}/scrape?{query}"


def build_announce_url(address: TrackerAddress, info_hash: InfoHash) -> str:
    return f"{address.base_url}/announce?info_hash={pct_encode(info_hash.raw)}"


class HTTPTrackerClient:
    """
    Queries an HTTP(S) tracker for swarm statistics through its scrape
    endpoint, or through one announce request per hash.
    """
    def __init__(self, address: TrackerAddress, errors: ErrorLog, timeout=2.0):
        self.address = address
        self.errors = errors
        self.timeout = timeout

    async def _get(self, session, url: str) -> bytes:
        logger.debug("GET %s", url)
        try:
            async with session.get(url, ssl=False) as resp:
                if resp.status != 200:
                    raise TrackerConnectionError(
                        f"Invalid tracker connection ({self.address.netloc}): HTTP {resp.status}."
                    )
                data = await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            raise TrackerConnectionError(f"Invalid tracker connection ({self.address.netloc}).") from exc

        if not data:
            raise TrackerConnectionError(f"Invalid tracker connection ({self.address.netloc}).")
        return data

    def _session(self):
        return aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))

    def _extract(self, body: bytes, info_hashes: List[InfoHash]) -> Dict[str, ScrapeRecord]:
        extractor = ScrapeFieldExtractor(body)
        results = {}
        for info_hash in info_hashes:
            record = extractor.extract(info_hash.raw)
            if record is None:
                self.errors.add(f"Invalid infohash ({info_hash.hex}) for tracker: {self.address.host}.")
                continue
            results[info_hash.hex] = record
        return results

    async def scrape(self, info_hashes: List[InfoHash]) -> Dict[str, ScrapeRecord]:
        url = build_scrape_url(self.address, info_hashes)

        async with self._session() as session:
            data = await self._get(session, url)

        if not data.startswith(SCRAPE_PREAMBLE):
            raise TrackerResponseError(f"Invalid scrape response ({self.address.netloc}).")

        results = self._extract(data, info_hashes)
        logger.debug("HTTP scrape %s resolved %d/%d hashes",
                     self.address.netloc, len(results), len(info_hashes))
        return results

    async def announce(self, info_hashes: List[InfoHash]) -> Dict[str, ScrapeRecord]:
        combined = b""

        async with self._session() as session:
            for info_hash in info_hashes:
                data = await self._get(session, build_announce_url(self.address, info_hash))

                if not data.startswith(ANNOUNCE_PREAMBLE) or data.startswith(ANNOUNCE_EMPTY_SWARM):
                    logger.debug("Skipping announce body for %s from %s", info_hash.hex, self.address.netloc)
                    continue

                # Give each body the same hash-keyed shape as a scrape response
                combined += b"20:" + info_hash.raw + b"d" + data

        results = self._extract(combined, info_hashes)
        logger.debug("HTTP announce %s resolved %d/%d hashes",
                     self.address.netloc, len(results), len(info_hashes))
        return results
