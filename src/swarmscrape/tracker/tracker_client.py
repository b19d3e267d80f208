"""
Multi-tracker fallback: walks the tracker list in order, handing every
still-unresolved hash to the next tracker until all are resolved or the
trackers run out.
"""
import logging
from typing import Dict, List, NamedTuple, Optional, Union

from ..errors import (
    ErrorLog,
    InfoHashRangeError,
    TrackerError,
    UnsupportedProtocolError,
)
from ..infohash import InfoHash, normalize_infohashes
from ..structure import ResultMap, ScrapeRecord
from .http_tracker import HTTPTrackerClient
from .udp_tracker import UDPTrackerClient
from .utils import Scheme, TrackerAddress, parse_tracker_url

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 2
DEFAULT_PEER_PORT = 6881


class AttemptResult(NamedTuple):
    """Outcome of querying one tracker: a partial result map, or the error that aborted it."""
    resolved: Dict[str, ScrapeRecord]
    error: Optional[TrackerError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ScrapeOutcome(NamedTuple):
    results: ResultMap
    errors: ErrorLog


class ScrapeState:
    """Everything one scrape call mutates. Never shared between calls."""
    def __init__(self, errors: ErrorLog):
        self.pending: List[InfoHash] = []
        self.resolved: ResultMap = {}
        self.errors = errors
        self.attempts_made = 0


class TrackerClient:
    def __init__(self, timeout=DEFAULT_TIMEOUT, announce=False, port=DEFAULT_PEER_PORT):
        self.timeout = timeout
        self.announce = announce
        self.port = port

    def _client_for(self, address: TrackerAddress, errors: ErrorLog):
        if address.scheme is Scheme.UDP:
            return UDPTrackerClient(address, errors, timeout=self.timeout, port=self.port)
        if address.scheme in (Scheme.HTTP, Scheme.HTTPS):
            return HTTPTrackerClient(address, errors, timeout=self.timeout)
        raise UnsupportedProtocolError(f"Unsupported protocol ({address.scheme.value}://{address.host}).")

    async def _attempt(self, address: TrackerAddress, info_hashes: List[InfoHash],
                       errors: ErrorLog) -> AttemptResult:
        try:
            client = self._client_for(address, errors)
            if self.announce:
                resolved = await client.announce(info_hashes)
            else:
                resolved = await client.scrape(info_hashes)
        except TrackerError as exc:
            return AttemptResult({}, exc)
        return AttemptResult(resolved)

    async def scrape(self, hashes: Union[str, List[str]], trackers: Union[str, List[str]],
                     max_trackers: Optional[int] = None,
                     errors: Optional[ErrorLog] = None) -> ScrapeOutcome:
        state = ScrapeState(errors if errors is not None else ErrorLog())

        if not trackers:
            state.errors.add("No tracker specified, aborting.")
            return ScrapeOutcome(state.resolved, state.errors)
        if isinstance(trackers, str):
            trackers = [trackers]
        try:
            trackers = list(trackers)
        except TypeError:
            state.errors.add(f"Invalid tracker list ({trackers!r}), aborting.")
            return ScrapeOutcome(state.resolved, state.errors)

        try:
            state.pending = normalize_infohashes(hashes, state.errors)
        except InfoHashRangeError as exc:
            state.errors.add(str(exc))
            return ScrapeOutcome(state.resolved, state.errors)

        if max_trackers is None:
            max_trackers = len(trackers)
        elif isinstance(max_trackers, bool) or not isinstance(max_trackers, int):
            state.errors.add("max_trackers must be an integer. Using all trackers.")
            max_trackers = len(trackers)

        for url in trackers:
            if not state.pending or state.attempts_made >= max_trackers:
                break

            try:
                address = parse_tracker_url(url)
            except TrackerError as exc:
                state.errors.add(str(exc))
                continue

            dispatched, state.pending = state.pending, []
            state.attempts_made += 1
            logger.debug("Querying %s for %d hashes", address.base_url, len(dispatched))

            result = await self._attempt(address, dispatched, state.errors)
            if not result.ok:
                state.errors.add(str(result.error))
                state.pending = dispatched
                continue

            for info_hash in dispatched:
                if info_hash.hex in result.resolved:
                    state.resolved.setdefault(info_hash.hex, result.resolved[info_hash.hex])
                else:
                    state.pending.append(info_hash)

        logger.debug("Scrape finished: %d resolved, %d pending, %d trackers tried",
                     len(state.resolved), len(state.pending), state.attempts_made)
        return ScrapeOutcome(state.resolved, state.errors)
