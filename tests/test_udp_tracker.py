import struct

import pytest

from conftest import CONNECTION_ID, tracker_responder
from swarmscrape.errors import ErrorLog, TrackerConnectionError, TrackerResponseError
from swarmscrape.infohash import InfoHash
from swarmscrape.structure import ScrapeRecord
from swarmscrape.tracker.udp_tracker import (
    UDPTrackerClient,
    build_announce_request,
    build_connect_request,
    build_scrape_request,
    parse_announce_response,
    parse_connect_response,
    parse_scrape_response,
)
from swarmscrape.tracker.utils import parse_tracker_url

KNOWN = InfoHash.from_hex("aa" * 20)
UNKNOWN = InfoHash.from_hex("bb" * 20)


def test_connect_roundtrip():
    req = build_connect_request(1234)

    assert len(req) == 16
    assert req[:8] == b"\x00\x00\x04\x17\x27\x10\x19\x80"
    assert struct.unpack(">II", req[8:]) == (0, 1234)

    resp = struct.pack(">IIQ", 0, 1234, CONNECTION_ID)
    assert parse_connect_response(resp, 1234) == struct.pack(">Q", CONNECTION_ID)


@pytest.mark.parametrize("resp", [
    struct.pack(">IIQ", 0, 999, CONNECTION_ID),   # wrong transaction id
    struct.pack(">IIQ", 1, 1234, CONNECTION_ID),  # wrong action
    struct.pack(">II", 0, 1234),                  # short read
    b"\x00\x00",
])
def test_connect_response_rejected(resp):
    with pytest.raises(ValueError):
        parse_connect_response(resp, 1234)


def test_tracker_error_message_surfaces():
    resp = struct.pack(">II", 3, 77) + b"go away"
    with pytest.raises(ValueError, match="go away"):
        parse_connect_response(resp, 77)


def test_scrape_request_layout():
    conn = b"C" * 8
    req = build_scrape_request(conn, 42, [KNOWN.raw, UNKNOWN.raw])

    assert req[:8] == conn
    assert struct.unpack(">II", req[8:16]) == (2, 42)
    assert req[16:] == KNOWN.raw + UNKNOWN.raw


def test_scrape_response_records():
    resp = struct.pack(">II", 2, 42) + struct.pack(">IIIIII", 5, 10, 2, 0, 0, 0)
    assert parse_scrape_response(resp, 42, 2) == [(5, 10, 2), (0, 0, 0)]

    with pytest.raises(ValueError):
        parse_scrape_response(resp[:-1], 42, 2)
    with pytest.raises(ValueError):
        parse_scrape_response(resp, 43, 2)


def test_announce_request_layout():
    conn = b"C" * 8
    peer_id = b"-SW0100-abcdefghijkl"
    req = build_announce_request(conn, 7, KNOWN.raw, peer_id, key=99, port=6881)

    assert len(req) == 100
    assert req[:8] == conn
    assert struct.unpack(">II", req[8:16]) == (1, 7)
    assert req[16:36] == KNOWN.raw
    assert req[36:56] == peer_id
    assert req[56:80] == b"0" * 24
    assert struct.unpack(">IIIiI", req[80:]) == (3, 0, 99, -1, 6881)


def test_announce_response():
    resp = struct.pack(">IIIII", 1, 7, 1800, 4, 9)
    assert parse_announce_response(resp, 7) == (4, 9)

    with pytest.raises(ValueError):
        parse_announce_response(resp[:19], 7)


def _client(tracker, errors, timeout=1.0):
    return UDPTrackerClient(parse_tracker_url(tracker.url), errors, timeout=timeout)


@pytest.mark.asyncio
async def test_udp_scrape(udp_tracker):
    tracker = udp_tracker(tracker_responder({KNOWN.raw: (20, 30, 10)}))
    errors = ErrorLog()

    results = await _client(tracker, errors).scrape([KNOWN, UNKNOWN])

    assert results == {KNOWN.hex: ScrapeRecord(20, 30, 10)}
    assert errors.entries == [f"Invalid infohash ({UNKNOWN.hex}) for tracker: 127.0.0.1."]
    assert len(tracker.requests) == 2


@pytest.mark.asyncio
async def test_udp_announce(udp_tracker):
    tracker = udp_tracker(tracker_responder({KNOWN.raw: (20, 30, 10)}))
    errors = ErrorLog()

    results = await _client(tracker, errors).announce([UNKNOWN, KNOWN])

    assert results == {KNOWN.hex: ScrapeRecord(20, 0, 10)}
    assert len(errors) == 1
    assert UNKNOWN.hex in errors.entries[0]
    assert "unregistered torrent" in errors.entries[0]

    # one connect, then one announce per hash
    assert len(tracker.requests) == 3
    assert tracker.requests[1][36:44] == b"-SW0100-"


@pytest.mark.asyncio
async def test_udp_silent_tracker_times_out(udp_tracker):
    tracker = udp_tracker(lambda data: None)

    with pytest.raises(TrackerConnectionError):
        await _client(tracker, ErrorLog(), timeout=0.2).scrape([KNOWN])


@pytest.mark.asyncio
async def test_udp_bad_transaction_id(udp_tracker):
    def respond(data):
        _, _, trans_id = struct.unpack(">QII", data[:16])
        return struct.pack(">IIQ", 0, trans_id + 1, CONNECTION_ID)

    tracker = udp_tracker(respond)

    with pytest.raises(TrackerResponseError):
        await _client(tracker, ErrorLog()).scrape([KNOWN])


@pytest.mark.asyncio
async def test_udp_short_scrape_response(udp_tracker):
    base = tracker_responder({KNOWN.raw: (1, 1, 1)})

    def respond(data):
        resp = base(data)
        return resp[:-4] if len(resp) > 16 else resp

    tracker = udp_tracker(respond)

    with pytest.raises(TrackerResponseError):
        await _client(tracker, ErrorLog()).scrape([KNOWN])


@pytest.mark.asyncio
async def test_udp_announce_timeout_message(udp_tracker):
    tracker = udp_tracker(lambda data: None)

    with pytest.raises(TrackerConnectionError, match=r"^Invalid tracker connection"):
        await _client(tracker, ErrorLog(), timeout=0.2).announce([KNOWN])
