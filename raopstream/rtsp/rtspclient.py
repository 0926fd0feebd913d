"""
Send rtsp requests over a persistent connection and wait for the responses.
"""
from logging import getLogger
from threading import Lock

from .. import __version__
from ..config import DEFAULT_RTSP_TIMEOUT
from .rtspconnection import RTSPConnection
from .rtsprequest import RTSPRequest

logger = getLogger("RTSPLogger")

# used for the user agent
USER_STR = "raopstream"
USER_AGENT = "{0}/{1}".format(USER_STR, __version__)


class RTSPClient(object):
    """
    Request/response engine for the rtsp control connection. Requests are strictly sequential, every request blocks
    until its response is read.
    """

    def __init__(self, ip, port, user_agent=USER_AGENT, timeout=DEFAULT_RTSP_TIMEOUT):
        """
        :param ip: server ip address
        :param port: server port
        :param user_agent: user agent which is added to each request without one
        :param timeout: seconds to wait for a response
        """
        self.connection = RTSPConnection(ip, port, timeout=timeout)
        self.user_agent = user_agent

        # counter variable, the first request uses 1
        self.cseq = 0
        # one request at a time, a response always belongs to the last request
        self._lock = Lock()

    def __str__(self):
        return "{0}<{1}:{2}>".format(self.__class__.__name__, *self.connection.address)

    def connect(self):
        """
        Open the TCP connection.
        :raises RTSPConnectionError: if the receiver can not be reached
        """
        logger.info("Connecting to %s:%s...", *self.connection.address)
        self.connection.open()

    @property
    def is_connected(self):
        return self.connection.is_open()

    @property
    def local_address(self):
        return self.connection.local_address

    @property
    def peer_address(self):
        return self.connection.peer_address

    def send_request(self, method, url, headers=None, body=None):
        """
        Send a request and wait for the response.
        :param method: rtsp method e.g. ANNOUNCE
        :param url: request url
        :param headers: request headers, they are sent verbatim after the CSeq header
        :param body: optional body as string or bytes
        :return: RTSPResponse
        """
        with self._lock:
            self.cseq += 1
            header = {"CSeq": self.cseq}
            if not headers or "User-Agent" not in headers:
                header["User-Agent"] = self.user_agent
            for key, value in (headers or {}).items():
                if key != "CSeq":
                    header[key] = value

            request = RTSPRequest(method, url, header, body=body)
            logger.debug("Send request:\n\033[91m" + str(request) + "\033[0m")

            self.connection.send_request(request)
            response = self.connection.get_response()

        logger.debug("Received response:\n\033[94m" + str(response) + "\033[0m")
        return response

    def close(self):
        """
        Close the connection. This method can be called multiple times.
        """
        if self.connection.is_open():
            logger.debug("Closing connection to %s:%s", *self.connection.address)
        self.connection.close()
