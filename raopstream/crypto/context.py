"""
Crypto context which is created once per session and handed to everything that needs randomness or keys.
"""
import os

from .srp import SRPClient, SRP_PRIVATE_SIZE
from .primitives import X25519KeyPair, X25519_KEY_SIZE


class CryptoContext(object):
    """
    Factory for the ephemeral keys of a pairing attempt.
    """

    def __init__(self, random_bytes=os.urandom):
        """
        :param random_bytes: callable returning n random bytes, replace it to get reproducible keys
        """
        self.random_bytes = random_bytes

    def new_x25519_keypair(self):
        """
        :return: new ephemeral X25519 key pair
        """
        return X25519KeyPair.from_seed(self.random_bytes(X25519_KEY_SIZE))

    def new_srp_client(self, identity, pin, private=None):
        """
        :param identity: client identity
        :param pin: pin code entered by the user
        :param private: optional fixed private exponent a as bytes
        :return: new SRPClient with a 256 bit random private exponent
        """
        if private is None:
            private = self.random_bytes(SRP_PRIVATE_SIZE)
        return SRPClient(identity, pin, private)
