"""
Classes in this package hand captured pcm frames to a session.
A CaptureBuffer decouples the capture producer from the network, a PcmStreamSource reads pcm data from a stream in
real time.
"""

from .capturebuffer import CaptureBuffer, BufferStatus
from .pcmstreamsource import PcmStreamSource, packets_to_ms, ms_to_packets

__all__ = ["CaptureBuffer", "BufferStatus", "PcmStreamSource", "packets_to_ms", "ms_to_packets"]
