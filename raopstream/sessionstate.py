"""
Lifecycle of a RaopSession. Each stage only carries the fields which are valid in that stage.

Idle -> Connected -> [PairingInProgress ->] Announced -> TransportReady -> Streaming -> Stopped
Every non terminal stage can change to Failed.
"""
from collections import namedtuple
from enum import Enum


class SessionState(Enum):
    IDLE = 0
    CONNECTED = 1
    PAIRING = 2
    ANNOUNCED = 3
    TRANSPORT_READY = 4
    STREAMING = 5
    STOPPED = 6
    FAILED = 7

    def __str__(self):
        return self.name


SessionIds = namedtuple("SessionIds", ["session_id", "client_instance", "active_remote"])


class Idle(namedtuple("Idle", [])):
    __slots__ = ()
    state = SessionState.IDLE


class Connected(namedtuple("Connected", ["ids", "client_ip"])):
    __slots__ = ()
    state = SessionState.CONNECTED


class PairingInProgress(namedtuple("PairingInProgress", ["ids", "client_ip"])):
    __slots__ = ()
    state = SessionState.PAIRING


class Announced(namedtuple("Announced", ["ids", "client_ip"])):
    __slots__ = ()
    state = SessionState.ANNOUNCED


class TransportReady(namedtuple("TransportReady", ["ids", "client_ip", "transport", "server_session"])):
    __slots__ = ()
    state = SessionState.TRANSPORT_READY


class Streaming(namedtuple("Streaming", ["ids", "client_ip", "transport", "server_session"])):
    __slots__ = ()
    state = SessionState.STREAMING


class Stopped(namedtuple("Stopped", [])):
    __slots__ = ()
    state = SessionState.STOPPED


class Failed(namedtuple("Failed", ["error"])):
    __slots__ = ()
    state = SessionState.FAILED


# stages which can not be left anymore
TERMINAL_STATES = (SessionState.STOPPED, SessionState.FAILED)

# stages in which the udp transport is available
TRANSPORT_STATES = (SessionState.TRANSPORT_READY, SessionState.STREAMING)
