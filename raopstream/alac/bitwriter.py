class BitWriter(object):
    """
    Write values most significant bit first into a continuous bit stream.
    Values do not need to be byte aligned, the next value always continues at the current bit position.
    """
    __slots__ = ["_value", "_bits"]

    def __init__(self):
        self._value = 0
        self._bits = 0

    def write(self, value, bits):
        """
        Append the lowest `bits` bits of value.
        :param value: unsigned integer
        :param bits: number of bits to write
        """
        if bits <= 0:
            return
        self._value = (self._value << bits) | (value & ((1 << bits) - 1))
        self._bits += bits

    def write_bytes(self, data):
        """
        Append every byte of data with 8 bits each.
        """
        if data:
            self.write(int.from_bytes(data, "big"), len(data) * 8)

    @property
    def bit_length(self):
        return self._bits

    def to_bytes(self):
        """
        Flush the stream. The last partial byte is padded with zero bits.
        :return: bit stream as bytes
        """
        pad = -self._bits % 8
        return (self._value << pad).to_bytes((self._bits + pad) // 8, "big")
