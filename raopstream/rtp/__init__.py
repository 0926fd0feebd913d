from .rtpheader import RtpHeader
from .rtppacket import AudioPacket, RTP_HEADER_SIZE


__all__ = ["RtpHeader", "AudioPacket", "RTP_HEADER_SIZE"]
