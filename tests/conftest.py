import socket
import struct
import threading

import pytest

from swarmscrape.tracker.udp_tracker import PROTOCOL_ID

CONNECTION_ID = 0x1122334455667788


def tracker_responder(stats):
    """
    Builds a responder for FakeUDPTracker that answers connect, scrape and
    announce requests from a {raw_hash: (seeders, completed, leechers)} table.
    Unknown hashes scrape as all zeros and announce as a tracker error.
    """
    def respond(data):
        if data[:8] == struct.pack(">Q", PROTOCOL_ID):
            _, action, trans_id = struct.unpack(">QII", data[:16])
            return struct.pack(">IIQ", 0, trans_id, CONNECTION_ID)

        action, trans_id = struct.unpack(">II", data[8:16])

        if action == 2:
            hashes = [data[i:i + 20] for i in range(16, len(data), 20)]
            body = b"".join(struct.pack(">III", *stats.get(h, (0, 0, 0))) for h in hashes)
            return struct.pack(">II", 2, trans_id) + body

        if action == 1:
            info_hash = data[16:36]
            if info_hash not in stats:
                return struct.pack(">II", 3, trans_id) + b"unregistered torrent"
            seeders, _, leechers = stats[info_hash]
            return struct.pack(">IIIII", 1, trans_id, 1800, leechers, seeders)

        return None

    return respond


class FakeUDPTracker:
    """Loopback UDP tracker running in a daemon thread."""
    def __init__(self, responder):
        self.responder = responder
        self.requests = []

        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.settimeout(0.1)
        self.port = self.sock.getsockname()[1]
        self.url = f"udp://127.0.0.1:{self.port}/announce"

        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self):
        while not self._stop.is_set():
            try:
                data, addr = self.sock.recvfrom(2048)
            except socket.timeout:
                continue
            except OSError:
                break

            self.requests.append(data)
            resp = self.responder(data)
            if resp is not None:
                self.sock.sendto(resp, addr)

    def close(self):
        self._stop.set()
        self._thread.join(timeout=1)
        self.sock.close()


@pytest.fixture
def udp_tracker():
    trackers = []

    def start(responder):
        tracker = FakeUDPTracker(responder)
        trackers.append(tracker)
        return tracker

    yield start

    for tracker in trackers:
        tracker.close()


class FakeResp:
    def __init__(self, body, status=200):
        self.body = body
        self.status = status

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc, val, tb):
        pass

    async def read(self):
        return self.body


class FakeSession:
    """
    Stands in for aiohttp.ClientSession. `handler(url)` returns the body
    bytes, a FakeResp, or raises.
    """
    def __init__(self, handler):
        self.handler = handler
        self.urls = []
        self.get_kwargs = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc, val, tb):
        pass

    def get(self, url, **kwargs):
        self.urls.append(url)
        self.get_kwargs.append(kwargs)
        result = self.handler(url)
        if isinstance(result, FakeResp):
            return result
        return FakeResp(result)


@pytest.fixture
def http_session(monkeypatch):
    import aiohttp

    def install(handler):
        session = FakeSession(handler)
        monkeypatch.setattr(aiohttp, "ClientSession", lambda **kwargs: session)
        return session

    return install
