"""
All possible exceptions.
"""


class RTSPConnectionError(ConnectionError):
    """
    Thrown when the TCP connection to the receiver can not be opened, read from or written to.
    """
    pass


class RTSPRequestTimeoutError(RTSPConnectionError):
    """
    Thrown when the receiver does not answer an RTSP request before the timeout.
    """
    pass


class BadResponseError(Exception):
    """
    Thrown when a response can not be parsed.
    """
    pass


class HandshakeFailedError(Exception):
    """
    Thrown when the receiver answers ANNOUNCE, SETUP or RECORD with anything but 200.
    """

    def __init__(self, message, code=None):
        super(HandshakeFailedError, self).__init__(message)
        self.code = code


class HandshakeNotFinishedError(Exception):
    """
    Thrown when a request needs a finished handshake, but the session is not yet connected.
    """
    pass


class PairingRequiredError(Exception):
    """
    Thrown when the receiver requires a pin code (403 on OPTIONS or ANNOUNCE), but no pin callback is available.
    """
    pass


class PairingFailedError(Exception):
    """
    Thrown when the pin code is wrong, the receiver rejected the proof or sent a malformed pairing response.
    The pairing is not retried, ask the user for a new pin code.
    """
    pass


class TransportError(Exception):
    """
    Thrown when a single audio packet could not be encoded or sent.
    """
    pass


class ListenerError(Exception):
    """
    Thrown when an udp listener fails to receive data for a reason other than the socket being closed.
    """
    pass


class SessionClosedError(Exception):
    """
    Thrown when a stopped or failed session should be used again. Create a new session instead.
    """
    pass


class SessionAlreadyConnectedError(Exception):
    """
    Thrown when connect is called on a session which is already connecting or connected.
    """
    pass
