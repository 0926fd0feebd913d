"""
A scripted RTSP receiver on localhost with udp sinks for the audio, control and timing ports.
"""
import hashlib
import socket
import socketserver
import threading
from binascii import hexlify, unhexlify
from collections import namedtuple, defaultdict, deque

import pytest
from srptools import SRPContext, SRPServerSession, constants

from raopstream.crypto import X25519KeyPair
from raopstream.util import write_plist_to_bytes, parse_plist_from_bytes

RecordedRequest = namedtuple("RecordedRequest", ["method", "uri", "headers", "body"])
MockResponse = namedtuple("MockResponse", ["code", "headers", "body"])

REASONS = {200: "OK", 403: "Forbidden", 404: "Not Found", 453: "Not Enough Bandwidth", 500: "Internal Server Error"}

SERVER_SESSION = "DEADBEEF"
SERVER_KEY_SEED = bytes(range(32))


class UdpSink(object):
    """
    Udp socket on localhost which records everything sent to it.
    """

    def __init__(self):
        self.socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.socket.bind(("127.0.0.1", 0))
        self.socket.settimeout(2)
        self.port = self.socket.getsockname()[1]

    def receive(self):
        """
        :return: data, address of the next packet
        """
        return self.socket.recvfrom(4096)

    def drain(self, timeout=0.2):
        """
        :return: all packets which arrive within timeout
        """
        packets = []
        self.socket.settimeout(timeout)
        try:
            while True:
                packets.append(self.socket.recvfrom(4096)[0])
        except socket.timeout:
            pass
        finally:
            self.socket.settimeout(2)
        return packets

    def close(self):
        self.socket.close()


class MockSRPServer(object):
    """
    Server side of the pin pairing.
    """

    def __init__(self, pin, send_proof=True):
        self.pin = pin
        self.send_proof = send_proof
        self._session = None
        self._salt = None

    def _context(self, user, password=None):
        return SRPContext(user, password, prime=constants.PRIME_2048, generator=constants.PRIME_2048_GEN,
                          hash_func=hashlib.sha512)

    def handle(self, body):
        plist = parse_plist_from_bytes(body)
        if "proof" not in plist:
            # step 1: identity and client public value
            self.user = plist["user"]
            self.client_public = plist["pk"]
            _, verifier, self._salt = self._context(self.user, self.pin).get_user_data_triplet()
            self._session = SRPServerSession(self._context(self.user), verifier)
            return MockResponse(200, {"Content-Type": "application/x-apple-binary-plist"},
                                write_plist_to_bytes({"salt": unhexlify(self._salt),
                                                      "pk": unhexlify(self._session.public)}))

        # step 2: proof
        self._session.process(hexlify(plist["pk"]).decode(), self._salt)
        if not self._session.verify_proof(hexlify(plist["proof"])):
            return MockResponse(403, {}, b"")
        if not self.send_proof:
            return MockResponse(200, {}, b"")
        return MockResponse(200, {"Content-Type": "application/x-apple-binary-plist"},
                            write_plist_to_bytes({"proof": unhexlify(self._session.key_proof_hash)}))


class MockReceiver(object):
    """
    Answers every request with 200 unless a response was scripted with respond().
    """

    def __init__(self):
        self.requests = []
        self.audio = UdpSink()
        self.control = UdpSink()
        self.timing = UdpSink()
        self.server_key = X25519KeyPair.from_seed(SERVER_KEY_SEED)
        self.srp = None
        self._scripted = defaultdict(deque)
        self._lock = threading.Lock()

        self._server = socketserver.ThreadingTCPServer(("127.0.0.1", 0), _RTSPHandler, bind_and_activate=False)
        self._server.allow_reuse_address = True
        self._server.daemon_threads = True
        self._server.server_bind()
        self._server.server_activate()
        self._server.receiver = self
        self.port = self._server.server_address[1]
        self._thread = threading.Thread(target=self._server.serve_forever, kwargs={"poll_interval": 0.05})
        self._thread.daemon = True
        self._thread.start()

    def respond(self, method, code, headers=None, body=b"", uri=None):
        """
        Script the next response for a method (and optionally an uri).
        A code of None closes the connection instead of answering.
        """
        self._scripted[(method, uri)].append(MockResponse(code, headers or {}, body))

    def methods(self):
        return [r.method if r.method != "POST" else r.uri for r in self.requests]

    def find(self, method):
        return [r for r in self.requests if r.method == method or r.uri == method]

    def transport_header(self):
        return "RTP/AVP/UDP;unicast;mode=record;server_port={0};control_port={1};timing_port={2}".format(
            self.audio.port, self.control.port, self.timing.port)

    def next_response(self, request):
        with self._lock:
            self.requests.append(request)
            for key in ((request.method, request.uri), (request.method, None)):
                if self._scripted[key]:
                    return self._scripted[key].popleft()

        if request.method == "SETUP":
            return MockResponse(200, {"Transport": self.transport_header(), "Session": SERVER_SESSION}, b"")
        if request.method == "RECORD":
            return MockResponse(200, {"Audio-Latency": "11025"}, b"")
        if request.uri == "/auth-setup":
            return MockResponse(200, {"Content-Type": "application/octet-stream"},
                                self.server_key.public_bytes + b"\x00" * 16)
        if request.uri == "/pair-setup-pin" and self.srp:
            return self.srp.handle(request.body)
        return MockResponse(200, {}, b"")

    def close(self):
        self._server.shutdown()
        self._server.server_close()
        for sink in (self.audio, self.control, self.timing):
            sink.close()


class _RTSPHandler(socketserver.StreamRequestHandler):

    def handle(self):
        receiver = self.server.receiver
        while True:
            line = self.rfile.readline()
            if not line:
                return
            line = line.strip()
            if not line:
                continue

            method, uri, _ = line.decode("utf-8").split(" ", 2)
            headers = {}
            while True:
                header_line = self.rfile.readline()
                if not header_line or not header_line.strip():
                    break
                key, _, value = header_line.decode("utf-8").partition(":")
                headers[key.strip()] = value.strip()

            body = self.rfile.read(int(headers.get("Content-Length", 0)))
            response = receiver.next_response(RecordedRequest(method, uri, headers, body))
            if response.code is None:
                return

            head = "RTSP/1.0 {0} {1}\r\nCSeq: {2}\r\n".format(response.code, REASONS.get(response.code, "Unknown"),
                                                             headers.get("CSeq", 0))
            for key, value in response.headers.items():
                head += "{0}: {1}\r\n".format(key, value)
            if response.body:
                head += "Content-Length: {0}\r\n".format(len(response.body))
            self.wfile.write(head.encode("utf-8") + b"\r\n" + response.body)
            self.wfile.flush()


@pytest.fixture
def receiver():
    mock = MockReceiver()
    yield mock
    mock.close()
