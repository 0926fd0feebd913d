import socket

import pytest

from raopstream.exceptions import RTSPConnectionError, RTSPRequestTimeoutError, BadResponseError
from raopstream.rtsp import RTSPClient, RTSPRequest, RTSPResponse, USER_AGENT


@pytest.fixture
def client(receiver):
    c = RTSPClient("127.0.0.1", receiver.port, timeout=2)
    c.connect()
    yield c
    c.close()


def test_cseq_starts_at_one_and_increments(receiver, client):
    client.send_request("OPTIONS", "*")
    client.send_request("OPTIONS", "*")
    assert [r.headers["CSeq"] for r in receiver.requests] == ["1", "2"]


def test_user_agent_is_added_only_if_missing(receiver, client):
    client.send_request("OPTIONS", "*")
    client.send_request("OPTIONS", "*", {"User-Agent": "custom"})
    assert receiver.requests[0].headers["User-Agent"] == USER_AGENT
    assert receiver.requests[1].headers["User-Agent"] == "custom"


def test_headers_are_sent_in_order():
    request = RTSPRequest("ANNOUNCE", "rtsp://1.2.3.4/1", {"CSeq": 1, "B": "2", "A": "1"}, body="v=0\r\n")
    data = request.to_data()
    assert data.startswith(b"ANNOUNCE rtsp://1.2.3.4/1 RTSP/1.0\r\nCSeq: 1\r\nB: 2\r\nA: 1\r\nContent-Length: 5\r\n")
    assert data.endswith(b"\r\n\r\nv=0\r\n")


def test_no_content_length_without_body():
    assert b"Content-Length" not in RTSPRequest("OPTIONS", "*", {"CSeq": 1}).to_data()


def test_body_is_read(receiver, client):
    receiver.respond("GET", 200, {"Content-Type": "text/plain"}, b"x" * 5000)
    res = client.send_request("GET", "/info")
    assert res.code == 200
    assert res.body == b"x" * 5000
    assert res.get_header("content-type") == "text/plain"


def test_binary_body_is_sent(receiver, client):
    client.send_request("POST", "/auth-setup", {"Content-Type": "application/octet-stream"}, body=b"\x01" + bytes(32))
    request = receiver.requests[0]
    assert request.headers["Content-Length"] == "33"
    assert request.body == b"\x01" + bytes(32)


def test_missing_content_length_means_no_body(receiver, client):
    res = client.send_request("OPTIONS", "*")
    assert res.content_length == 0
    assert res.body == b""
    # the connection is still usable
    assert client.send_request("OPTIONS", "*").code == 200


def test_parse_response_header():
    res = RTSPResponse.parse_response_header(b"RTSP/1.0 453 Not Enough Bandwidth\r\nCSeq: 3\r\n"
                                             b"Transport: a=b;c=d\r\nContent-Length: nope")
    assert res.code == 453
    assert res.status == "Not Enough Bandwidth"
    assert res.get_header("Transport") == "a=b;c=d"
    assert res.get_header("cseq") == "3"
    assert res.content_length == 0
    assert not res.ok


def test_malformed_status_line():
    with pytest.raises(BadResponseError):
        RTSPResponse.parse_response_header(b"HELLO\r\n")


def test_close_is_idempotent(client):
    client.close()
    client.close()
    assert not client.is_connected


def test_connection_refused():
    s = socket.socket()
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()

    with pytest.raises(RTSPConnectionError):
        RTSPClient("127.0.0.1", port, timeout=1).connect()


def test_connection_closed_by_receiver(receiver, client):
    receiver.respond("OPTIONS", None)
    with pytest.raises(RTSPConnectionError):
        client.send_request("OPTIONS", "*")


def test_timeout():
    server = socket.socket()
    server.bind(("127.0.0.1", 0))
    server.listen(1)
    try:
        client = RTSPClient("127.0.0.1", server.getsockname()[1], timeout=0.2)
        client.connect()
        with pytest.raises(RTSPRequestTimeoutError):
            client.send_request("OPTIONS", "*")
        client.close()
    finally:
        server.close()
