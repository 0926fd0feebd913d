import re

from ..exceptions import BadResponseError
from ..util import to_unicode, hex_preview

STATUS_LINE_REGEX = re.compile(r"(\w+)/(\d+\.\d+)\s+(\d{3})\s*(.*)")


class RTSPResponse(object):
    """
    Parse an rtsp response
    """
    def __init__(self, protocol, protocol_version, code, status):
        self.protocol = protocol
        self.protocol_version = protocol_version
        self.code = code
        self.status = status
        self.headers = {}
        self.body = b""

    @classmethod
    def parse_response_header(cls, response_str):
        """
        Parse the status line and the headers of a response.
        :param response_str: received header data without the terminating blank line
        :return: response without body
        """
        try:
            res_arr = to_unicode(response_str).split("\r\n")
        except UnicodeDecodeError:
            raise BadResponseError("Response header is not valid utf-8.")

        # check the first line for the response code
        match = STATUS_LINE_REGEX.match(res_arr[0])
        if not match:
            raise BadResponseError("Malformed status line: {0!r}".format(res_arr[0]))
        protocol, version, code, status = match.groups()

        res = cls(protocol, version, int(code), status)
        for header_entry in res_arr[1:]:
            key, sep, value = header_entry.partition(":")
            if sep and key.strip():
                res.headers[key.strip()] = value.strip()

        return res

    def get_header(self, name, default=None):
        """
        Case insensitive header lookup.
        :param name: header name
        :param default: value if the header is missing
        """
        if name in self.headers:
            return self.headers[name]
        name = name.lower()
        for key, value in self.headers.items():
            if key.lower() == name:
                return value
        return default

    @property
    def content_length(self):
        """
        :return: value of the Content-Length header, 0 if it is missing or malformed
        """
        try:
            return max(int(self.get_header("Content-Length", 0)), 0)
        except ValueError:
            return 0

    @property
    def ok(self):
        return self.code == 200

    def __repr__(self):
        s = "{0}/{1} {2} {3}\n".format(self.protocol, self.protocol_version, self.code, self.status)
        s += "\n".join(["{0}: {1}".format(k, v) for k, v in self.headers.items()])
        if self.body:
            try:
                body = to_unicode(self.body)
            except UnicodeDecodeError:
                body = hex_preview(self.body)
        else:
            body = ""
        return s + "\n" + body
