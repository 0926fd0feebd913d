import socket
import threading
from struct import pack, unpack

import pytest

from raopstream import RaopSession, SessionState
from raopstream.config import BYTES_PER_PACKET, FRAMES_PER_PACKET
from raopstream.exceptions import HandshakeFailedError, HandshakeNotFinishedError, PairingRequiredError, \
    PairingFailedError, SessionClosedError, SessionAlreadyConnectedError, RTSPConnectionError
from raopstream.rtp import RtpHeader
from raopstream.util import write_plist_to_bytes

from conftest import MockSRPServer, SERVER_SESSION

SILENCE = bytes(BYTES_PER_PACKET)


def make_session(receiver, **kwargs):
    kwargs.setdefault("sync_interval", None)
    kwargs.setdefault("timeout", 2)
    return RaopSession("127.0.0.1", receiver.port, **kwargs)


@pytest.fixture
def session(receiver):
    s = make_session(receiver, session_id="1234567", client_instance="366B4165DD64AD3A", active_remote="1986535575")
    yield s
    s.stop()


def audio_packets(receiver, count):
    packets = [receiver.audio.receive()[0] for _ in range(count)]
    return [(RtpHeader.parse(p), unpack(">I", p[4:8])[0], unpack(">I", p[8:12])[0]) for p in packets]


# ---------------------------------------------------------------------
# Handshake
# ---------------------------------------------------------------------

def test_connect_starts_streaming(receiver, session):
    session.connect()

    assert session.state == SessionState.STREAMING
    assert session.is_streaming
    assert receiver.methods() == ["OPTIONS", "/auth-setup", "ANNOUNCE", "SETUP", "RECORD"]

    transport = session.transport
    assert len(transport.sockets) == 3
    assert not transport.is_closed
    assert transport.server_ports == (receiver.audio.port, receiver.control.port, receiver.timing.port)
    assert session.stage.server_session == SERVER_SESSION


def test_options_error_does_not_abort_connect(receiver, session):
    receiver.respond("OPTIONS", 404)
    session.connect()

    assert session.state == SessionState.STREAMING
    assert receiver.methods() == ["OPTIONS", "/auth-setup", "ANNOUNCE", "SETUP", "RECORD"]


def test_first_frame_has_marker(receiver, session):
    session.connect()

    assert session.send_frame(SILENCE)
    assert session.send_frame(SILENCE)

    (first, ts0, ssrc0), (second, ts1, ssrc1) = audio_packets(receiver, 2)
    assert first.marker
    assert not second.marker
    assert (first.seqnum, second.seqnum) == (0, 1)
    assert ssrc0 == ssrc1 == session.ssrc


def test_request_headers(receiver, session):
    session.connect()

    options, auth, announce, setup, record = receiver.requests
    assert options.uri == "*"
    for request in (options, announce, setup, record):
        assert request.headers["Client-Instance"] == "366B4165DD64AD3A"
        assert request.headers["DACP-ID"] == "366B4165DD64AD3A"
        assert request.headers["Active-Remote"] == "1986535575"
        assert request.headers["User-Agent"].startswith("raopstream/")

    assert announce.uri == "rtsp://127.0.0.1/1234567"
    assert announce.headers["Content-Type"] == "application/sdp"
    sdp = announce.body.decode().split("\r\n")
    assert "o=iTunes 1234567 0 IN IP4 127.0.0.1" in sdp
    assert "c=IN IP4 127.0.0.1" in sdp
    assert "m=audio 0 RTP/AVP 96" in sdp
    assert "a=rtpmap:96 AppleLossless" in sdp
    assert "a=fmtp:96 352 0 16 40 10 14 2 255 0 0 44100" in sdp
    assert "a=min-latency:11025" in sdp

    transport = session.transport
    assert setup.headers["Transport"] == "RTP/AVP/UDP;unicast;interleaved=0-1;mode=record;" \
                                         "control_port={0};timing_port={1}".format(transport.control.port,
                                                                                  transport.timing.port)
    assert "Session" not in setup.headers

    assert record.headers["Range"] == "npt=0-"
    assert record.headers["RTP-Info"] == "seq=0;rtptime=0"
    assert record.headers["Session"] == SERVER_SESSION
    assert session.audio_latency == 11025


def test_first_sync_is_sent_before_record(receiver, session):
    session.connect()

    data, _ = receiver.control.receive()
    assert data[:4] == b"\x90\xd4\x07\x00"
    assert unpack(">I", data[16:20])[0] == 0


def test_state_changes(receiver, session):
    changes = []
    connected = []
    session.on_state_changed += lambda old, new: changes.append((old, new))
    session.on_connected += lambda: connected.append(True)

    session.connect()
    session.stop()

    assert changes == [(SessionState.IDLE, SessionState.CONNECTED),
                       (SessionState.CONNECTED, SessionState.ANNOUNCED),
                       (SessionState.ANNOUNCED, SessionState.TRANSPORT_READY),
                       (SessionState.TRANSPORT_READY, SessionState.STREAMING),
                       (SessionState.STREAMING, SessionState.STOPPED)]
    assert connected == [True]


def test_connect_twice(receiver, session):
    session.connect()
    with pytest.raises(SessionAlreadyConnectedError):
        session.connect()


def test_connect_async(receiver, session):
    done = threading.Event()
    session.on_connected += done.set

    session.connect_async().join(5)

    assert done.is_set()
    assert session.is_streaming


def test_connect_async_reports_errors(receiver, session):
    errors = []
    receiver.respond("ANNOUNCE", 500)
    session.on_error += errors.append

    session.connect_async().join(5)

    assert len(errors) == 1
    assert isinstance(errors[0], HandshakeFailedError)
    assert session.state == SessionState.FAILED


def test_silence_frames(receiver):
    session = make_session(receiver, silence_frames=3)
    try:
        session.connect()
        packets = audio_packets(receiver, 3)
        assert [header.marker for header, _, _ in packets] == [True, False, False]
        assert session.frames_sent == 3
    finally:
        session.stop()


# ---------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------

def test_announce_failure(receiver, session):
    receiver.respond("ANNOUNCE", 500)

    with pytest.raises(HandshakeFailedError) as e:
        session.connect()

    assert e.value.code == 500
    assert session.state == SessionState.FAILED
    assert isinstance(session.stage.error, HandshakeFailedError)
    assert session.transport is None
    assert not session._rtsp.is_connected
    assert "SETUP" not in receiver.methods()


def test_setup_failure_closes_sockets(receiver, session):
    receiver.respond("SETUP", 500)

    with pytest.raises(HandshakeFailedError):
        session.connect()

    assert session.state == SessionState.FAILED
    assert session._transport.is_closed
    session._sync.join(2)
    assert not any(t.is_alive() for t in session._sync._threads)


def test_setup_without_server_port(receiver, session):
    receiver.respond("SETUP", 200, {"Transport": "RTP/AVP/UDP;unicast;control_port=6001"})

    with pytest.raises(HandshakeFailedError):
        session.connect()
    assert session._transport.is_closed


def test_record_failure(receiver, session):
    receiver.respond("RECORD", 453)

    with pytest.raises(HandshakeFailedError) as e:
        session.connect()

    assert e.value.code == 453
    assert session._transport.is_closed
    assert "TEARDOWN" not in receiver.methods()


def test_connection_refused(receiver):
    s = socket.socket()
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()

    session = RaopSession("127.0.0.1", port, timeout=1)
    with pytest.raises(RTSPConnectionError):
        session.connect()
    assert session.state == SessionState.FAILED


def test_failed_session_can_not_be_reused(receiver, session):
    receiver.respond("ANNOUNCE", 500)
    with pytest.raises(HandshakeFailedError):
        session.connect()

    with pytest.raises(SessionClosedError):
        session.connect()


def test_auth_setup_is_best_effort(receiver, session):
    receiver.respond("POST", 404, uri="/auth-setup")
    session.connect()

    assert session.is_streaming
    assert session.auth_result is None


def test_auth_setup_result(receiver, session):
    session.connect()
    assert session.auth_result.server_public == receiver.server_key.public_bytes
    assert len(session.auth_result.shared_secret) == 32


def test_auth_setup_disabled(receiver):
    session = make_session(receiver, auth_setup=False)
    try:
        session.connect()
        assert receiver.methods() == ["OPTIONS", "ANNOUNCE", "SETUP", "RECORD"]
    finally:
        session.stop()


def test_legacy_pair_setup(receiver):
    session = make_session(receiver, legacy_pair_setup=True)
    receiver.respond("POST", 200, body=receiver.server_key.public_bytes + pack(">I", 0), uri="/pair-setup")
    try:
        session.connect()
        assert receiver.methods() == ["OPTIONS", "/pair-setup", "ANNOUNCE", "SETUP", "RECORD"]
        assert session.auth_result.server_public == receiver.server_key.public_bytes
    finally:
        session.stop()


# ---------------------------------------------------------------------
# Pairing
# ---------------------------------------------------------------------

def test_pairing_required_without_callback(receiver, session):
    receiver.respond("OPTIONS", 403)

    with pytest.raises(PairingRequiredError):
        session.connect()
    assert session.state == SessionState.FAILED


def test_pin_pairing(receiver, session):
    changes = []
    session.on_state_changed += lambda old, new: changes.append(new)
    receiver.respond("OPTIONS", 403)
    receiver.srp = MockSRPServer("1234")

    session.connect(pin_callback=lambda: "1234")

    assert receiver.methods() == ["OPTIONS", "/pair-pin-start", "/pair-setup-pin", "/pair-setup-pin", "OPTIONS",
                                  "ANNOUNCE", "SETUP", "RECORD"]
    assert receiver.srp.user == "366B4165DD64AD3A"
    assert SessionState.PAIRING in changes
    assert session.pairing is not None
    assert session.is_streaming


def test_pairing_on_announce(receiver, session):
    receiver.respond("ANNOUNCE", 403)
    receiver.srp = MockSRPServer("1234")

    session.connect(pin_callback=lambda: "1234")

    assert receiver.methods() == ["OPTIONS", "/auth-setup", "ANNOUNCE", "/pair-pin-start", "/pair-setup-pin",
                                  "/pair-setup-pin", "ANNOUNCE", "SETUP", "RECORD"]
    assert session.is_streaming


def test_wrong_pin(receiver, session):
    receiver.respond("OPTIONS", 403)
    receiver.srp = MockSRPServer("1234")

    with pytest.raises(PairingFailedError):
        session.connect(pin_callback=lambda: "0000")
    assert session.state == SessionState.FAILED


def test_still_forbidden_after_pairing(receiver, session):
    receiver.respond("OPTIONS", 403)
    receiver.respond("OPTIONS", 403)
    receiver.srp = MockSRPServer("1234")

    with pytest.raises(PairingFailedError):
        session.connect(pin_callback=lambda: "1234")


# ---------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------

def test_timestamp_advances_by_samples(receiver, session):
    session.connect()

    session.send_frame(SILENCE)
    session.send_frame(SILENCE[:704])
    session.send_frame(SILENCE)

    timestamps = [ts for _, ts, _ in audio_packets(receiver, 3)]
    assert timestamps == [0, FRAMES_PER_PACKET, FRAMES_PER_PACKET + 176]
    assert session.timestamp == 2 * FRAMES_PER_PACKET + 176


def test_sequence_wraps_around(receiver, session):
    session.connect()
    start = session.sequence_number

    for _ in range(65535):
        session.send_frame(b"\x00\x00\x00\x00")
    assert session.sequence_number == 65535

    session.send_frame(b"\x00\x00\x00\x00")
    assert session.sequence_number == start
    assert session.frames_sent == 65536


def test_sync_every_125_frames(receiver, session):
    session.connect()
    receiver.control.receive()  # first sync

    for _ in range(251):
        session.send_frame(b"\x00\x00\x00\x00")

    syncs = receiver.control.drain(0.5)
    assert len(syncs) == 2
    assert all(sync[0] == 0x80 for sync in syncs)
    assert [unpack(">I", sync[16:20])[0] for sync in syncs] == [125, 250]


def test_sync_failure_does_not_drop_audio(receiver, session):
    session.connect()

    def broken_control(data):
        raise OSError("control send failed")

    session.transport.send_control = broken_control

    results = [session.send_frame(b"\x00\x00\x00\x00") for _ in range(126)]
    assert all(results)

    headers = [header for header, _, _ in audio_packets(receiver, 126)]
    assert headers[125].seqnum == 125


def test_send_frame_errors_are_not_raised(receiver, session):
    session.connect()

    assert not session.send_frame(b"")
    assert session.sequence_number == 0


def test_send_frame_before_connect(session):
    assert not session.send_frame(SILENCE)


def test_set_volume(receiver, session):
    session.connect()

    assert session.set_volume(0.0)
    assert session.volume_db == -144.0
    assert session.set_volume(1.0)
    assert session.volume_db == 0.0
    assert session.set_volume(0.66)
    assert session.volume_db == pytest.approx(-10.2, abs=0.01)

    requests = receiver.find("SET_PARAMETER")
    assert [r.body for r in requests[:2]] == [b"volume: -144.000000\r\n", b"volume: 0.000000\r\n"]
    assert requests[0].headers["Content-Type"] == "text/parameters"
    assert requests[0].headers["Session"] == SERVER_SESSION


def test_initial_volume(receiver):
    session = make_session(receiver, initial_volume=0.5)
    try:
        session.connect()
        assert receiver.methods()[-1] == "SET_PARAMETER"
        assert receiver.requests[-1].body == b"volume: -15.000000\r\n"
    finally:
        session.stop()


def test_set_volume_before_setup(session):
    with pytest.raises(HandshakeNotFinishedError):
        session.set_volume(0.5)


def test_request_info(receiver, session):
    session.connect()

    receiver.respond("GET", 200, {"Content-Type": "application/x-apple-binary-plist"},
                     write_plist_to_bytes({"name": "Living Room"}), uri="/info")
    assert session.request_info() == {"name": "Living Room"}
    assert session.request_info() == {}


# ---------------------------------------------------------------------
# Stop
# ---------------------------------------------------------------------

def test_stop(receiver, session):
    session.connect()
    transport = session.transport

    session.stop()
    session.stop()

    assert session.state == SessionState.STOPPED
    assert transport.is_closed
    assert receiver.find("TEARDOWN")[0].headers["Session"] == SERVER_SESSION
    assert len(receiver.find("TEARDOWN")) == 1
    assert not session.send_frame(SILENCE)
    with pytest.raises(SessionClosedError):
        session.connect()


def test_stop_ignores_teardown_errors(receiver, session):
    session.connect()
    receiver.respond("TEARDOWN", None)

    session.stop()
    assert session.state == SessionState.STOPPED


def test_stop_before_connect(receiver, session):
    session.stop()

    assert session.state == SessionState.STOPPED
    assert receiver.requests == []
