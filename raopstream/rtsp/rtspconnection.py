"""
Simple blocking connection which sends a request and reads the matching response.
"""
import socket

from ..config import DEFAULT_RTSP_TIMEOUT
from ..exceptions import RTSPConnectionError, RTSPRequestTimeoutError
from .rtspresponse import RTSPResponse

BUFFER_SIZE = 1024


class RTSPConnection(object):
    def __init__(self, ip, port, timeout=DEFAULT_RTSP_TIMEOUT):
        """
        :param ip: receiver ip address or hostname
        :param port: receiver port number
        :param timeout: timeout after which the receiver will be considered gone, None waits forever
        """
        self.address = (ip, port)
        self.timeout = timeout
        self._socket = None
        self._buffer = b""

    def open(self):
        """
        Create a TCP connection to the host.
        """
        try:
            self._socket = socket.create_connection(self.address, timeout=self.timeout)
        except socket.timeout:
            raise RTSPConnectionError("Timeout while connecting to {0}:{1}.".format(*self.address))
        except OSError as e:
            raise RTSPConnectionError("Can not connect to {0}:{1}: {2}".format(self.address[0], self.address[1], e))
        self._buffer = b""

    def is_open(self):
        return self._socket is not None

    def close(self):
        """
        Close the socket connection. Calling close on a closed connection does nothing.
        """
        s, self._socket = self._socket, None
        if s:
            try:
                s.close()
            except OSError:
                pass

    @property
    def local_address(self):
        """
        :return: ip address of this device used for the connection
        """
        return self._require_socket().getsockname()[0]

    @property
    def peer_address(self):
        """
        :return: resolved ip address of the receiver
        """
        return self._require_socket().getpeername()[0]

    def _require_socket(self):
        if not self._socket:
            raise RTSPConnectionError("Connection to {0}:{1} is not open.".format(*self.address))
        return self._socket

    def send_request(self, req):
        """
        Send a request to the server.
        :param req: RTSPRequest
        """
        try:
            self._require_socket().sendall(req.to_data())
        except RTSPConnectionError:
            raise
        except socket.timeout:
            raise RTSPRequestTimeoutError("Timeout while sending {0}.".format(req.method))
        except OSError as e:
            raise RTSPConnectionError("Can not send {0}: {1}".format(req.method, e))

    def get_response(self):
        """
        Wait until a response is received and return it. This method is blocking.
        :return: RTSPResponse
        """
        try:
            line = self._read_line()
            # skip blank lines left over from a previous response
            while not line:
                line = self._read_line()

            lines = []
            while line:
                lines.append(line)
                line = self._read_line()

            res = RTSPResponse.parse_response_header(b"\r\n".join(lines))
            res.body = self._read_exact(res.content_length)
        except RTSPConnectionError:
            raise
        except socket.timeout:
            raise RTSPRequestTimeoutError("No response from {0}:{1} within {2} seconds.".format(
                self.address[0], self.address[1], self.timeout))
        except OSError as e:
            raise RTSPConnectionError("Can not read response: {0}".format(e))
        return res

    def _recv(self):
        data = self._require_socket().recv(BUFFER_SIZE)
        if not data:
            raise RTSPConnectionError("Connection closed by {0}:{1}.".format(*self.address))
        self._buffer += data

    def _read_line(self):
        """
        :return: next line without the line ending
        """
        pos = self._buffer.find(b"\n")
        while pos < 0:
            self._recv()
            pos = self._buffer.find(b"\n")

        line, self._buffer = self._buffer[:pos], self._buffer[pos+1:]
        return line.rstrip(b"\r")

    def _read_exact(self, size):
        """
        Read exactly size bytes. Stops early if the receiver closes the connection.
        :param size: number of bytes to read
        :return: received bytes
        """
        while len(self._buffer) < size:
            data = self._require_socket().recv(min(size - len(self._buffer), BUFFER_SIZE))
            if not data:
                break
            self._buffer += data

        body, self._buffer = self._buffer[:size], self._buffer[size:]
        return body
