"""
Single audio packet to be send.
"""

from struct import pack

from ..config import RTP_PAYLOAD_TYPE
from ..util import low16, low32
from .rtpheader import RtpHeader, RTP_VERSION_2, RTP_HEADER_B_MARKER

RTP_HEADER_SIZE = 12


class AudioPacket(object):
    """
    RTP packet with a 12 byte header followed by the encoded audio payload.
    """
    __slots__ = ["payload", "rtp_header", "timestamp", "ssrc", "is_first", "_data"]

    def __init__(self, seq, timestamp, ssrc, payload, is_first=False, payload_type=RTP_PAYLOAD_TYPE):
        """
        :param seq: sequence number, truncated to 16 bit
        :param timestamp: rtp timestamp, truncated to 32 bit
        :param ssrc: synchronization source identifier
        :param payload: encoded audio data
        :param is_first: set the marker bit for the first packet of a stream
        """
        self.payload = payload
        self.is_first = is_first
        self.timestamp = low32(timestamp)
        self.ssrc = low32(ssrc)
        b = payload_type | RTP_HEADER_B_MARKER if is_first else payload_type
        self.rtp_header = RtpHeader(a=RTP_VERSION_2, b=b, seqnum=low16(seq))
        self._data = pack(">BBHII", self.rtp_header.a, self.rtp_header.b, self.rtp_header.seqnum, self.timestamp,
                          self.ssrc) + bytes(payload)

    def to_data(self):
        return self._data

    def __len__(self):
        return len(self._data)

    def __repr__(self):
        return "RTPHeader: {0}\ntimestamp: {1}\nssrc: {2}\npayload: {3} bytes\n".format(self.rtp_header, self.timestamp,
                                                                                       self.ssrc, len(self.payload))
