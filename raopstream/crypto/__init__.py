"""
Cryptographic functions required for pairing and authentication.
"""

from .context import CryptoContext
from .srp import SRPClient, RaopSRPContext
from .primitives import X25519KeyPair, hash_sha512, hkdf_sha512, aes_gcm_encrypt, aes_gcm_decrypt

__all__ = ["CryptoContext", "SRPClient", "RaopSRPContext", "X25519KeyPair", "hash_sha512", "hkdf_sha512",
           "aes_gcm_encrypt", "aes_gcm_decrypt"]
