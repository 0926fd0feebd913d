from os import urandom
from random import randint

from .helper import to_hex


def random_hex(n):
    """
    :param n: number of bytes
    :return: random bytes hex encoded
    """
    return to_hex(urandom(n)).upper()


def random_int(n):
    """
    :param n: number of digits
    :return: random int with exactly n digits
    """
    return randint(10**(n-1), (10**n)-1)


def random_uint32():
    """
    :return: random unsigned 32 bit integer
    """
    return int.from_bytes(urandom(4), "big")


def low16(i):
    """
    :param i: number
    :return: lower 16 bits of number
    """
    return i % 65536


def low32(i):
    """
    :param i: number
    :return: lower 32 bits of number
    """
    return i % 4294967296


def volume_to_db(volume):
    """
    Convert a volume between 0.0 and 1.0 to the airplay volume in dB.
    0.0 mutes the receiver (-144 dB), everything else is mapped linear to -30 dB ... 0 dB.
    :param volume: volume as float, values outside of [0, 1] are clamped
    :return: volume in dB
    """
    volume = min(max(float(volume), 0.0), 1.0)
    if volume == 0.0:
        return -144.0
    return volume * 30.0 - 30.0
