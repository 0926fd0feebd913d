"""
Low level cryptographic helpers: hashing, X25519 key agreement, HKDF and AES-GCM.
"""
import hashlib

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

X25519_KEY_SIZE = 32


def hash_sha512(*indata):
    """Create SHA512 hash for input arguments."""
    hasher = hashlib.sha512()
    for data in indata:
        if isinstance(data, str):
            hasher.update(data.encode('utf-8'))
        elif isinstance(data, (bytes, bytearray)):
            hasher.update(data)
        else:
            raise TypeError('invalid input data: ' + str(data))
    return hasher.digest()


def hkdf_sha512(key_material, salt, info, length=32):
    """
    Derive a key from the given key material.
    :param key_material: input key material e.g. a shared secret
    :param salt: salt as bytes or string
    :param info: info as bytes or string
    :param length: length of the derived key
    :return: derived key
    """
    if isinstance(salt, str):
        salt = salt.encode("utf-8")
    if isinstance(info, str):
        info = info.encode("utf-8")
    hkdf = HKDF(algorithm=hashes.SHA512(), length=length, salt=salt, info=info)
    return hkdf.derive(key_material)


def aes_gcm_encrypt(key, nonce, data, aad=None):
    """
    Encrypt data with AES in GCM mode.
    :return: cipher text with the 16 byte authentication tag appended
    """
    return AESGCM(key).encrypt(nonce, data, aad)


def aes_gcm_decrypt(key, nonce, data, aad=None):
    """
    Decrypt and authenticate data encrypted by aes_gcm_encrypt.
    :raises cryptography.exceptions.InvalidTag: if the authentication fails
    """
    return AESGCM(key).decrypt(nonce, data, aad)


class X25519KeyPair(object):
    """
    Ephemeral X25519 key pair used for a single key agreement.
    """
    __slots__ = ["_private", "public_bytes"]

    def __init__(self, private_key):
        self._private = private_key
        self.public_bytes = private_key.public_key().public_bytes(encoding=serialization.Encoding.Raw,
                                                                  format=serialization.PublicFormat.Raw)

    @classmethod
    def from_seed(cls, seed):
        """
        :param seed: 32 random bytes used as private key
        """
        return cls(X25519PrivateKey.from_private_bytes(seed))

    def shared_secret(self, peer_public):
        """
        Compute the ECDH shared secret.
        :param peer_public: 32 byte public key of the other side
        :return: 32 byte shared secret
        """
        if len(peer_public) != X25519_KEY_SIZE:
            raise ValueError("X25519 public key must be {0} bytes, got {1}.".format(X25519_KEY_SIZE, len(peer_public)))
        return self._private.exchange(X25519PublicKey.from_public_bytes(bytes(peer_public)))
