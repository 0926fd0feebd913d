from struct import unpack_from, pack

from ..rtp import RtpHeader
from ..util import NtpTime, low32

CONTROL_RANGE_RESEND = 0x55
SYNC_PAYLOAD = 0xd4
SYNC_FIRST = 0x90
SYNC_DEFAULT = 0x80
SYNC_MARKER = 0x0007  # written little endian
SYNC_PACKET_SIZE = 20


class ResendPacket(object):
    __slots__ = ["rtp_header", "missed_seqnum", "count", "_data"]

    def __init__(self):
        self.rtp_header = None
        self.missed_seqnum = 0
        self.count = 0
        self._data = None

    @classmethod
    def parse(cls, data):
        """
        Parse the raw data into a retransmit request.
        :param data: raw data received from udp server
        :return: resend packet instance or None if the data is no retransmit request
        """
        if len(data) < 8:
            return None

        control_packet = cls()
        control_packet.rtp_header = RtpHeader.parse(data)

        # malformed data
        if control_packet.rtp_header.payload_type != CONTROL_RANGE_RESEND:
            return None

        control_packet.missed_seqnum = unpack_from(">H", data, 4)[0]
        control_packet.count = unpack_from(">H", data, 6)[0]
        control_packet._data = data
        return control_packet

    def __repr__(self):
        return "RTPHeader: {0}\nmissed_seqnum: {1}\ncount: {2}\n".format(self.rtp_header, self.missed_seqnum,
                                                                         self.count)


class SyncPacket(object):

    __slots__ = ["rtp_header", "now_minus_latency", "time_last_sync", "now", "_data"]

    @classmethod
    def create(cls,
               now_minus_latency=0,  # current RTP timestamp minus the latency (playback position)
               time_last_sync=NtpTime(0, 0),  # current time
               now=0,  # current RTP timestamp
               is_first=True):
        sync_packet = cls()

        rtp_header = RtpHeader(a=SYNC_FIRST if is_first else SYNC_DEFAULT, b=SYNC_PAYLOAD, seqnum=SYNC_MARKER)

        sec, frac = time_last_sync
        now_minus_latency = low32(now_minus_latency)
        now = low32(now)
        data = pack(">BB", rtp_header.a, rtp_header.b) + pack("<H", rtp_header.seqnum) + \
            pack(">IIII", now_minus_latency, sec, frac, now)

        sync_packet.rtp_header = rtp_header
        sync_packet.now_minus_latency = now_minus_latency
        sync_packet.time_last_sync = time_last_sync
        sync_packet.now = now
        sync_packet._data = data
        return sync_packet

    def __init__(self):
        self.rtp_header = None
        self.now_minus_latency = 0  # rtp timestamp
        self.time_last_sync = NtpTime(0, 0)
        self.now = 0  # rtp timestamp
        self._data = b""

    @property
    def is_first(self):
        return self.rtp_header is not None and self.rtp_header.a == SYNC_FIRST

    def to_data(self):
        return self._data

    def __repr__(self):
        return "RTPHeader: {0}\nnow_minus_latency: {1}\ntime_last_sync: {2}\nnow: {3}\n"\
            .format(self.rtp_header, self.now_minus_latency, self.time_last_sync, self.now)
