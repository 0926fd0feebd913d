"""
Wrap raw pcm data into an uncompressed ALAC frame.
See: https://github.com/philippe44/RAOP-Player/blob/master/src/alac_wrapper.cpp (pcm_to_alac_raw)
"""
from array import array

from .bitwriter import BitWriter

ALAC_END_TAG = 7
ALAC_STEREO = 1


class ALACEncoder(object):
    """
    Encoder for the "uncompressed ALAC" frames expected by AirTunes receivers.
    The encoder has no state, the same input always returns the same frame.
    """

    def encode(self, pcm):
        """
        :param pcm: 16 bit little endian stereo samples
        :return: alac frame
        """
        # an incomplete trailing stereo frame is ignored
        pcm = pcm[:len(pcm) - len(pcm) % 4]
        if not pcm:
            raise ValueError("Can not encode an empty frame.")

        frames = len(pcm) // 4

        writer = BitWriter()
        writer.write(ALAC_STEREO, 3)  # channels
        writer.write(0, 4)  # unknown
        writer.write(0, 8)  # unknown
        writer.write(0, 4)  # unknown
        writer.write(1, 1)  # has size
        writer.write(0, 2)  # unused
        writer.write(1, 1)  # is not compressed
        writer.write(frames, 32)

        # samples are written big endian and continue at bit 55 of the stream
        samples = array("H")
        samples.frombytes(bytes(pcm))
        samples.byteswap()
        writer.write_bytes(samples.tobytes())

        writer.write(ALAC_END_TAG, 3)
        return writer.to_bytes()
