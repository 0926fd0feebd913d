import time

# seconds from 1.1.1900 to 1.1.1970
NTP_EPOCH_OFFSET = 2208988800


class NtpTime(object):
    """
    64 bit NTP timestamp: seconds since 1900 and the fraction of a second scaled by 2^32.
    """
    __slots__ = ["second", "fraction"]

    def __init__(self, second, fraction):
        self.second = second
        self.fraction = fraction

    def __iter__(self):
        """
        Support unpacking.
        :return: iterator for slots
        """
        return (x for x in [self.second, self.fraction])

    def __eq__(self, other):
        return isinstance(other, NtpTime) and tuple(self) == tuple(other)

    def __str__(self):
        return "({0}, {1})".format(self.second, self.fraction)

    def __repr__(self):
        return str(self)

    def to_int(self):
        """
        :return: timestamp as unsigned 64 bit integer
        """
        return ((self.second & 0xffffffff) << 32) | (self.fraction & 0xffffffff)

    @classmethod
    def from_int(cls, value):
        return cls(value >> 32, value & 0xffffffff)

    @classmethod
    def from_unix(cls, unix_time):
        """
        :param unix_time: seconds since 1.1.1970 as float
        :return: ntp timestamp
        """
        sec = int(unix_time)
        frac = int((unix_time - sec) * 4294967296)
        return cls((sec + NTP_EPOCH_OFFSET) & 0xffffffff, frac & 0xffffffff)

    @classmethod
    def get_timestamp(cls):
        """
        :return: current ntp timestamp
        """
        return cls.from_unix(time.time())
