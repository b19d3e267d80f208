"""
UDP Tracker Client (BEP 15) implementation using asyncio DatagramProtocol.
"""
import asyncio
import logging
import random
import struct
from enum import IntEnum
from typing import Dict, List, Optional, Tuple

from ..errors import ErrorLog, TrackerConnectionError, TrackerResponseError
from ..infohash import InfoHash
from ..structure import ScrapeRecord
from .utils import TrackerAddress, generate_peer_id

logger = logging.getLogger(__name__)

PROTOCOL_ID = 0x41727101980
HEADER_LEN = 8          # action + transaction_id
CONNECT_RESPONSE_LEN = 16
SCRAPE_RECORD_LEN = 12  # seeders + completed + leechers
ANNOUNCE_RESPONSE_LEN = 20

EVENT_STOPPED = 3
ZERO_COUNTER = b"0" * 8  # downloaded / left / uploaded


class UDPAction(IntEnum):
    """Action codes of the UDP tracker protocol."""
    CONNECT = 0
    ANNOUNCE = 1
    SCRAPE = 2
    ERROR = 3


def new_transaction_id() -> int:
    return random.randint(0, 2**31 - 1)


# ---- Request builders ----
def build_connect_request(transaction_id: int) -> bytes:
    return struct.pack(">QII", PROTOCOL_ID, UDPAction.CONNECT, transaction_id)


def build_scrape_request(connection_id: bytes, transaction_id: int, info_hashes: List[bytes]) -> bytes:
    return (
        connection_id +
        struct.pack(">II", UDPAction.SCRAPE, transaction_id) +
        b"".join(info_hashes)
    )


def build_announce_request(connection_id: bytes, transaction_id: int, info_hash: bytes,
                           peer_id: bytes, key: int, port: int) -> bytes:
    """
    Announce with event=stopped so the tracker reports counts without
    keeping us in the swarm.
    """
    if len(info_hash) != 20 or len(peer_id) != 20:
        raise ValueError("info_hash and peer_id must be 20 bytes each")

    return (
        connection_id +
        struct.pack(">II20s20s", UDPAction.ANNOUNCE, transaction_id, info_hash, peer_id) +
        ZERO_COUNTER * 3 +
        struct.pack(">IIIiI", EVENT_STOPPED, 0, key, -1, port)
    )


# ---- Response parsers ----
def _check_header(data: bytes, expected_action: UDPAction, transaction_id: int):
    action, trans_res = struct.unpack(">II", data[:HEADER_LEN])

    if action == UDPAction.ERROR and trans_res == transaction_id:
        message = data[HEADER_LEN:].decode(errors="replace")
        raise ValueError(f"tracker error: {message}")

    if action != expected_action or trans_res != transaction_id:
        raise ValueError(f"unexpected action {action} / transaction id {trans_res}")


def parse_connect_response(data: bytes, transaction_id: int) -> bytes:
    """
    Validate a connect response and return the opaque 8-byte connection id.
    Raises ValueError if the response does not answer our request.
    """
    if len(data) < HEADER_LEN:
        raise ValueError("connect response too short")
    _check_header(data, UDPAction.CONNECT, transaction_id)
    if len(data) < CONNECT_RESPONSE_LEN:
        raise ValueError("connect response too short")

    return data[8:16]


def parse_scrape_response(data: bytes, transaction_id: int, count: int) -> List[Tuple[int, int, int]]:
    """
    Returns one (seeders, completed, leechers) tuple per requested hash,
    in request order.
    """
    if len(data) < HEADER_LEN:
        raise ValueError("scrape response too short")
    _check_header(data, UDPAction.SCRAPE, transaction_id)
    if len(data) < HEADER_LEN + SCRAPE_RECORD_LEN * count:
        raise ValueError("scrape response too short")

    return [
        struct.unpack_from(">III", data, HEADER_LEN + SCRAPE_RECORD_LEN * i)
        for i in range(count)
    ]


def parse_announce_response(data: bytes, transaction_id: int) -> Tuple[int, int]:
    """Returns (leechers, seeders) from an announce response."""
    if len(data) < HEADER_LEN:
        raise ValueError("announce response too short")
    _check_header(data, UDPAction.ANNOUNCE, transaction_id)
    if len(data) < ANNOUNCE_RESPONSE_LEN:
        raise ValueError("announce response too short")

    _interval, leechers, seeders = struct.unpack(">III", data[8:20])
    return leechers, seeders


class UDPTrackerProtocol(asyncio.DatagramProtocol):
    """
    A DatagramProtocol to handle UDP communication with a tracker.
    """
    def __init__(self):
        self.transport = None
        self.response_future = None

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        if self.response_future and not self.response_future.done():
            self.response_future.set_result(data)

    def error_received(self, exc):
        if self.response_future and not self.response_future.done():
            self.response_future.set_exception(exc)

    def connection_lost(self, exc):
        if self.response_future and not self.response_future.done():
            self.response_future.set_exception(exc or ConnectionError("UDP endpoint closed"))

    async def send_and_receive(self, data: bytes, timeout: float) -> bytes:
        if not self.transport:
            raise RuntimeError("Transport not connected")

        self.response_future = asyncio.get_running_loop().create_future()
        self.transport.sendto(data)
        return await asyncio.wait_for(self.response_future, timeout=timeout)


class UDPTrackerClient:
    """
    Queries a UDP tracker for swarm statistics, either with one batched
    scrape or with one announce per hash.
    """
    def __init__(self, address: TrackerAddress, errors: ErrorLog, timeout=2.0, port=6881):
        self.address = address
        self.errors = errors
        self.timeout = timeout
        self.port = port
        self.protocol: Optional[UDPTrackerProtocol] = None
        self.transport: Optional[asyncio.DatagramTransport] = None

    async def _create_endpoint(self):
        loop = asyncio.get_running_loop()
        try:
            self.transport, self.protocol = await asyncio.wait_for(
                loop.create_datagram_endpoint(
                    UDPTrackerProtocol,
                    remote_addr=(self.address.host, self.address.port),
                ),
                timeout=self.timeout,
            )
        except (OSError, asyncio.TimeoutError) as exc:
            raise TrackerConnectionError(f"Couldn't create socket ({self.address.netloc}).") from exc

    def _close(self):
        if self.transport:
            self.transport.close()
        self.transport = None
        self.protocol = None

    async def _request(self, packet: bytes) -> bytes:
        try:
            return await self.protocol.send_and_receive(packet, self.timeout)
        except (OSError, asyncio.TimeoutError) as exc:
            raise TrackerConnectionError(f"Invalid tracker connection ({self.address.netloc}).") from exc

    async def _connect(self) -> bytes:
        transaction_id = new_transaction_id()
        resp = await self._request(build_connect_request(transaction_id))

        try:
            return parse_connect_response(resp, transaction_id)
        except ValueError as exc:
            raise TrackerResponseError(f"Invalid connect result ({self.address.netloc}): {exc}.") from exc

    async def scrape(self, info_hashes: List[InfoHash]) -> Dict[str, ScrapeRecord]:
        await self._create_endpoint()
        try:
            connection_id = await self._connect()

            transaction_id = new_transaction_id()
            req = build_scrape_request(connection_id, transaction_id, [h.raw for h in info_hashes])
            resp = await self._request(req)

            try:
                records = parse_scrape_response(resp, transaction_id, len(info_hashes))
            except ValueError as exc:
                raise TrackerResponseError(f"Invalid scrape result ({self.address.netloc}): {exc}.") from exc
        finally:
            self._close()

        results = {}
        for info_hash, (seeders, completed, leechers) in zip(info_hashes, records):
            # A zero leading field means the tracker has nothing for this hash
            if seeders == 0:
                self.errors.add(f"Invalid infohash ({info_hash.hex}) for tracker: {self.address.host}.")
                continue
            results[info_hash.hex] = ScrapeRecord(seeders, completed, leechers)

        logger.debug("UDP scrape %s resolved %d/%d hashes",
                     self.address.netloc, len(results), len(info_hashes))
        return results

    async def announce(self, info_hashes: List[InfoHash]) -> Dict[str, ScrapeRecord]:
        results = {}
        peer_id = generate_peer_id()

        await self._create_endpoint()
        try:
            connection_id = await self._connect()

            for info_hash in info_hashes:
                transaction_id = new_transaction_id()
                req = build_announce_request(
                    connection_id, transaction_id, info_hash.raw, peer_id,
                    key=random.randint(0, 2**31 - 1), port=self.port,
                )
                resp = await self._request(req)

                try:
                    leechers, seeders = parse_announce_response(resp, transaction_id)
                except ValueError as exc:
                    self.errors.add(
                        f"Invalid announce response for infohash ({info_hash.hex}) "
                        f"from tracker {self.address.host}: {exc}."
                    )
                    continue

                # UDP announce carries no completed count
                results[info_hash.hex] = ScrapeRecord(seeders, 0, leechers)
        finally:
            self._close()

        logger.debug("UDP announce %s resolved %d/%d hashes",
                     self.address.netloc, len(results), len(info_hashes))
        return results
