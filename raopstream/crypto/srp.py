"""
SRP6a client used for the pin code pairing with an AirPlay receiver.
The receiver uses the 2048 bit group with generator 2 and SHA-512 as hash function.
See: https://htmlpreview.github.io/?https://github.com/philippe44/RAOP-Player/blob/master/doc/auth_protocol.html
"""
import hmac
import hashlib
import binascii

from srptools import SRPContext, SRPClientSession, constants

from .primitives import hash_sha512

SRP_PRIVATE_SIZE = 32  # 256 bit private exponent


class RaopSRPContext(SRPContext):
    """SRP context with the parameters expected by AirPlay receivers."""

    def __init__(self, username, password):
        super(RaopSRPContext, self).__init__(str(username),
                                             str(password),
                                             prime=constants.PRIME_2048,
                                             generator=constants.PRIME_2048_GEN,
                                             hash_func=hashlib.sha512)


class SRPClient(object):
    """
    Client side of a single SRP exchange.
    Usage:
        client = SRPClient(identity, pin, private)
        client.public  # A, send to the receiver
        m1 = client.compute_proof(salt, server_public)
        client.verify_server_proof(m2)
    """

    def __init__(self, identity, pin, private):
        """
        :param identity: username of this client (the client instance id)
        :param pin: pin code displayed by the receiver
        :param private: private exponent a as bytes
        """
        self.identity = identity
        self._context = RaopSRPContext(identity, pin)
        self._session = SRPClientSession(self._context, binascii.hexlify(private).decode())
        self.salt = None
        self.server_public = None
        self.session_key = None
        self.proof = None

    @property
    def public(self):
        """
        :return: public ephemeral value A = g^a mod N
        """
        return binascii.unhexlify(self._session.public)

    def compute_proof(self, salt, server_public):
        """
        Run SRP with the servers salt and public value B.
        :param salt: salt received from the receiver
        :param server_public: B received from the receiver
        :return: client proof M1 (64 bytes)
        """
        pk_str = binascii.hexlify(server_public).decode()
        salt_str = binascii.hexlify(salt).decode()

        session_key, key_proof, _ = self._session.process(pk_str, salt_str)

        self.salt = salt
        self.server_public = server_public
        self.session_key = binascii.unhexlify(session_key)
        self.proof = binascii.unhexlify(key_proof)
        return self.proof

    def verify_server_proof(self, server_proof):
        """
        M2 = H(A | M1 | K)
        :param server_proof: M2 received from the receiver
        :return: True if the receiver knows the same session key, False otherwise
        """
        if self.proof is None:
            return False
        expected = hash_sha512(self.public, self.proof, self.session_key)
        return hmac.compare_digest(expected, bytes(server_proof))
