from plistlib import dumps, loads, FMT_BINARY, InvalidFileException


def to_bytes(s):
    """
    Convert a string to bytes.
    :param s: string
    :return: bytes of the string.
    """
    if isinstance(s, (bytes, bytearray)):
        return bytes(s)
    return bytes(str(s), "UTF-8")


def to_unicode(s):
    """
    Convert bytes to a string.
    :param s: bytes or string
    :return: string as unicode string
    """
    return s if isinstance(s, str) else s.decode("utf-8")


def to_hex(s):
    """
    Convert a bytes object to hex.
    :param s: bytes object
    :return: bytes converted to hex
    """
    return s.hex()


def hex_preview(data, n=32):
    """
    Short readable representation of binary data for the logs.
    :param data: bytes object
    :param n: number of bytes to show
    :return: hex string of the first n bytes
    """
    preview = to_hex(data[:n])
    if len(data) > n:
        preview += "..."
    return "<{0} bytes: {1}>".format(len(data), preview)


def write_plist_to_bytes(dic):
    """
    :param dic: plist entries as dictionary
    :return: binary encoded plist
    """
    return dumps(dic, fmt=FMT_BINARY)


def parse_plist_from_bytes(data):
    """
    Convert a binary encoded plist to a dictionary.
    :param data: plist data
    :return: dictionary
    :raises ValueError: if the data is not a binary plist dictionary
    """
    try:
        plist = loads(data, fmt=FMT_BINARY)
    except InvalidFileException as e:
        raise ValueError("Malformed binary plist: {0}".format(e))

    if not isinstance(plist, dict):
        raise ValueError("Expected a dictionary as plist root, got {0}.".format(type(plist).__name__))
    return plist
