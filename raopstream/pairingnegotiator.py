"""
Pairing and authentication with the receiver.
- /auth-setup: X25519 key agreement which most receivers expect before ANNOUNCE
- /pair-pin-start + /pair-setup-pin: SRP6a pin code pairing for receivers which answer with 403
- /pair-setup: legacy key exchange returning the receivers certificate chain
See: https://htmlpreview.github.io/?https://github.com/philippe44/RAOP-Player/blob/master/doc/auth_protocol.html
"""
from logging import getLogger
from struct import unpack_from

from cryptography import x509
from cryptography.hazmat.primitives.serialization import pkcs7

from .crypto import CryptoContext, hkdf_sha512
from .exceptions import PairingFailedError
from .util import write_plist_to_bytes, parse_plist_from_bytes, to_hex

logger = getLogger("PairingLogger")

AUTH_SETUP_URL = "/auth-setup"
PAIR_PIN_START_URL = "/pair-pin-start"
PAIR_SETUP_PIN_URL = "/pair-setup-pin"
PAIR_SETUP_URL = "/pair-setup"

AUTH_TYPE_CURVE25519 = b"\x01"
PUBLIC_KEY_SIZE = 32

CONTENT_TYPE_BINARY = "application/octet-stream"
CONTENT_TYPE_PLIST = "application/x-apple-binary-plist"


class AuthSetupResult(object):
    """
    Outcome of an X25519 key agreement with the receiver.
    """
    __slots__ = ["client_public", "server_public", "shared_secret"]

    def __init__(self, client_public, server_public, shared_secret):
        self.client_public = client_public
        self.server_public = server_public
        self.shared_secret = shared_secret

    def derive_key(self, salt, info, length=32):
        """
        Derive a key from the shared secret with HKDF-SHA512.
        """
        return hkdf_sha512(self.shared_secret, salt, info, length)

    def __repr__(self):
        return "{0}(server_public={1})".format(self.__class__.__name__, to_hex(self.server_public))


class PairSetupResult(AuthSetupResult):
    """
    Outcome of the legacy /pair-setup exchange. The certificates are parsed, but never verified.
    """
    __slots__ = ["certificate_chain", "certificates", "signature"]

    def __init__(self, client_public, server_public, shared_secret, certificate_chain=b"", certificates=None,
                 signature=b""):
        super(PairSetupResult, self).__init__(client_public, server_public, shared_secret)
        self.certificate_chain = certificate_chain
        self.certificates = certificates or []
        self.signature = signature


def _read_length_prefixed(data, offset):
    """
    :return: bytes with a 4 byte big endian length prefix at offset and the offset behind them
    """
    length = unpack_from(">I", data, offset)[0]
    offset += 4
    if offset + length > len(data):
        raise PairingFailedError("Truncated pairing response: expected {0} bytes, got {1}.".format(
            length, len(data) - offset))
    return data[offset:offset+length], offset + length


def parse_key_and_chain(body):
    """
    Split a /pair-setup response.
    Format: 32 bytes public key, 4 bytes length + certificate chain, optional 4 bytes length + signature
    :param body: response body
    :return: server public key, certificate chain, signature
    """
    if len(body) < PUBLIC_KEY_SIZE:
        raise PairingFailedError("Pairing response too short to contain a public key: {0} bytes.".format(len(body)))

    server_public = bytes(body[:PUBLIC_KEY_SIZE])
    offset = PUBLIC_KEY_SIZE
    chain, signature = b"", b""

    if len(body) >= offset + 4:
        chain, offset = _read_length_prefixed(body, offset)
    if len(body) >= offset + 4:
        signature, offset = _read_length_prefixed(body, offset)

    return server_public, chain, signature


def load_certificates(chain):
    """
    Parse a certificate chain, either a single DER certificate or a DER PKCS7 bundle.
    :return: list of x509 certificates, empty if the data could not be parsed
    """
    if not chain:
        return []
    try:
        return [x509.load_der_x509_certificate(chain)]
    except ValueError:
        pass
    try:
        return pkcs7.load_der_pkcs7_certificates(chain)
    except ValueError:
        logger.warning("Could not parse the certificate chain (%s bytes).", len(chain))
        return []


class PairingNegotiator(object):
    """
    Run the pairing and authentication requests over an existing rtsp connection.
    """

    def __init__(self, rtsp_client, crypto=None, headers=None):
        """
        :param rtsp_client: connected RTSPClient
        :param crypto: CryptoContext used for all keys
        :param headers: headers added to every request, e.g. Client-Instance and DACP-ID
        """
        self._rtsp = rtsp_client
        self.crypto = crypto or CryptoContext()
        self._headers = dict(headers or {})

    def _post(self, url, body=None, content_type=None):
        header = dict(self._headers)
        header["Connection"] = "keep-alive"
        if content_type:
            header["Content-Type"] = content_type
        return self._rtsp.send_request("POST", url, header, body=body)

    # region X25519
    def auth_setup(self):
        """
        Send our X25519 public key to /auth-setup and compute the shared secret.
        The rest of the response (certificate and signature) is ignored.
        :return: AuthSetupResult
        """
        keypair = self.crypto.new_x25519_keypair()

        res = self._post(AUTH_SETUP_URL, AUTH_TYPE_CURVE25519 + keypair.public_bytes, CONTENT_TYPE_BINARY)
        if res.code != 200:
            raise PairingFailedError("auth-setup failed with code {0}.".format(res.code))
        if len(res.body) < PUBLIC_KEY_SIZE:
            raise PairingFailedError("auth-setup response too short: {0} bytes.".format(len(res.body)))

        server_public = bytes(res.body[:PUBLIC_KEY_SIZE])
        shared_secret = keypair.shared_secret(server_public)
        logger.info("auth-setup finished, server key: %s", to_hex(server_public))
        logger.debug("auth-setup shared secret: %s", to_hex(shared_secret))

        return AuthSetupResult(keypair.public_bytes, server_public, shared_secret)

    def pair_setup(self):
        """
        Legacy pairing: send our public key to /pair-setup and read the receivers key and certificate chain.
        :return: PairSetupResult
        """
        keypair = self.crypto.new_x25519_keypair()

        res = self._post(PAIR_SETUP_URL, keypair.public_bytes, CONTENT_TYPE_BINARY)
        if res.code != 200:
            raise PairingFailedError("pair-setup failed with code {0}.".format(res.code))

        server_public, chain, signature = parse_key_and_chain(res.body)
        certificates = load_certificates(chain)
        for cert in certificates:
            logger.info("Receiver certificate (not verified): %s", cert.subject.rfc4514_string())

        return PairSetupResult(keypair.public_bytes, server_public, keypair.shared_secret(server_public), chain,
                               certificates, signature)
    # endregion

    # region SRP pin pairing
    def request_pin(self):
        """
        Show a pin code on the receiver.
        """
        res = self._post(PAIR_PIN_START_URL)
        if res.code != 200:
            raise PairingFailedError("Can not request a pin code, receiver answered {0}.".format(res.code))
        logger.info("Receiver shows a pin code.")

    def pair_with_pin(self, identity, pin, private=None):
        """
        Perform the SRP pairing with the pin code displayed by the receiver.
        :param identity: our identity (client instance id)
        :param pin: pin code
        :param private: optional fixed SRP private exponent
        :return: SRPClient holding the session key
        :raises PairingFailedError: on a wrong pin or a malformed response
        """
        srp = self.crypto.new_srp_client(identity, pin, private)

        # 1. send our identity and public value, receive salt and public value of the receiver
        body = write_plist_to_bytes({"user": identity, "method": "pin", "pk": srp.public})
        res = self._post(PAIR_SETUP_PIN_URL, body, CONTENT_TYPE_PLIST)
        if res.code != 200:
            raise PairingFailedError("Can not receive public key and salt, receiver answered {0}.".format(res.code))

        try:
            res_plist = parse_plist_from_bytes(res.body)
            salt = res_plist["salt"]
            server_public = res_plist["pk"]
        except (ValueError, KeyError) as e:
            raise PairingFailedError("Malformed pairing response: {0}".format(e))
        if not isinstance(salt, bytes) or not isinstance(server_public, bytes):
            raise PairingFailedError("Malformed pairing response: salt and pk must be data.")

        # 2. run the secure remote password procedure and send the proof
        m1_proof = srp.compute_proof(salt, server_public)
        body = write_plist_to_bytes({"pk": srp.public, "proof": m1_proof})
        res = self._post(PAIR_SETUP_PIN_URL, body, CONTENT_TYPE_PLIST)

        if res.code == 403:
            raise PairingFailedError("Wrong pin code used.")
        if res.code != 200:
            raise PairingFailedError("Pin code proof rejected with code {0}.".format(res.code))

        # 3. check the receivers proof if it sent one
        if res.body:
            try:
                server_proof = parse_plist_from_bytes(res.body).get("proof")
            except ValueError:
                server_proof = None
            if server_proof is not None and not srp.verify_server_proof(server_proof):
                raise PairingFailedError("Receiver proof does not match (mitm?).")

        logger.info("Pin pairing finished for identity %s.", identity)
        return srp
    # endregion
