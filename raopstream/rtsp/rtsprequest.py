from ..util import to_bytes, to_unicode, hex_preview


class RTSPRequest(object):
    def __init__(self, method, uri, headers, body=None):
        """
        Convert a header dictionary to bytes which can be send using a socket.
        :param method: method to send e.g. OPTIONS
        :param uri: receiver uri
        :param headers: dictionary containing the header information, the order is kept
        :param body: optional body as string or bytes
        """
        self.method = method
        self.uri = uri
        self.headers = dict(headers)

        # create body
        self._body = to_bytes(body) if body else b""
        if self._body:
            # add Content-Length field to header
            self.headers["Content-Length"] = len(self._body)

        # create header
        h = to_bytes("{0} {1} RTSP/1.0\r\n".format(method, uri))
        for key, value in self.headers.items():
            h += to_bytes(key) + b": " + to_bytes(value) + b"\r\n"
        self._head = h

    @property
    def body(self):
        return self._body

    def to_data(self):
        return self._head + b"\r\n" + self._body

    def __repr__(self):
        if self._body:
            try:
                body = to_unicode(self._body)
            except UnicodeDecodeError:
                body = hex_preview(self._body)
        else:
            body = ""
        return to_unicode(self._head.replace(b"\r\n", b"\n"))+body
