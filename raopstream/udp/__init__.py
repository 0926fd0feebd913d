"""
Classes in this package are used to send and respond to control and timing packets.
"""

from .transport import TransportEndpoints, ServerPorts, parse_transport_header
from .timingsync import TimingSyncEngine
from .timingpacket import TimingPacket
from .controlpacket import SyncPacket, ResendPacket

__all__ = ["TransportEndpoints", "ServerPorts", "parse_transport_header", "TimingSyncEngine", "TimingPacket",
           "SyncPacket", "ResendPacket"]
