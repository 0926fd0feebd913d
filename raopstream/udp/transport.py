"""
Udp sockets of a single session: audio, control and timing.
"""
import re
import socket
from collections import namedtuple
from logging import getLogger
from threading import Lock

logger = getLogger("RAOPSessionLogger")

SocketSpecification = namedtuple("SocketSpecification", ["socket", "port", "name"])
ServerPorts = namedtuple("ServerPorts", ["server_port", "control_port", "timing_port"])

TRANSPORT_PORT_REGEX = re.compile(r"^\s*(server_port|control_port|timing_port)\s*=\s*(\d{1,5})\s*$")


def find_open_ports(start_port):
    """
    Find all open ports beginning by the start_port.
    :param start_port: port to begin the search
    :yield: socket, open port
    """
    assert 0 < start_port < 65535

    for port in range(start_port, 65535):
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            s.bind(("", port))
        except OSError:
            # socket already in use
            s.close()
            continue
        yield s, port


def open_udp_socket(name, port=None):
    """
    :param name: name of the socket used for logging
    :param port: first port to try or None to bind an ephemeral port
    :return: SocketSpecification of the bound socket
    """
    if port:
        s, p = next(find_open_ports(port))
    else:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.bind(("", 0))
        p = s.getsockname()[1]
    return SocketSpecification(s, p, name)


def parse_transport_header(transport):
    """
    Read the receiver ports from the Transport header of a SETUP response.
    E.g: RTP/AVP/UDP;unicast;mode=record;server_port=6000;control_port=6001;timing_port=6002
    :param transport: value of the Transport header
    :return: ServerPorts, missing control or timing ports are 0
    :raises ValueError: if no server_port is available
    """
    ports = {}
    for field in transport.split(";"):
        match = TRANSPORT_PORT_REGEX.match(field)
        if match:
            ports[match.group(1)] = int(match.group(2))

    if not ports.get("server_port"):
        raise ValueError("Missing server_port in transport: {0}".format(transport))

    return ServerPorts(ports["server_port"], ports.get("control_port", 0), ports.get("timing_port", 0))


class TransportEndpoints(object):
    """
    Owns the three client udp sockets of a session and knows where to send audio and control packets.
    The sockets are opened on creation and closed exactly once. A closed transport can not be reopened.
    """

    def __init__(self, remote_ip, control_port=None, timing_port=None):
        """
        :param remote_ip: ip address of the receiver
        :param control_port: first local control port to try, None for an ephemeral port
        :param timing_port: first local timing port to try, None for an ephemeral port
        """
        self.remote_ip = remote_ip
        self.server_ports = None
        self.control = None
        self.timing = None
        self.audio = None
        self._closed = False
        self._close_lock = Lock()

        try:
            self.control = open_udp_socket("control", control_port)
            self.timing = open_udp_socket("timing", timing_port)
            self.audio = open_udp_socket("audio")
        except OSError:
            self.close()
            raise

        logger.info("Opened udp ports: control=%s, timing=%s, audio=%s", self.control.port, self.timing.port,
                    self.audio.port)

    def __str__(self):
        return "{0}<{1}>: local control={2}, timing={3}, audio={4}, server={5}".format(
            self.__class__.__name__, self.remote_ip, self.control and self.control.port,
            self.timing and self.timing.port, self.audio and self.audio.port, self.server_ports)

    @property
    def is_closed(self):
        return self._closed

    @property
    def sockets(self):
        return [spec for spec in (self.control, self.timing, self.audio) if spec]

    def set_server_ports(self, server_ports):
        """
        :param server_ports: ServerPorts parsed from the SETUP response
        """
        self.server_ports = server_ports

    def send_audio(self, data):
        """
        Send an audio packet to the receivers server port.
        :return: number of bytes send
        """
        return self.audio.socket.sendto(data, (self.remote_ip, self.server_ports.server_port))

    def send_control(self, data):
        """
        Send a control packet to the receivers control port.
        :return: number of bytes send or 0 if the receiver has no control port
        """
        if not self.server_ports or not self.server_ports.control_port:
            return 0
        return self.control.socket.sendto(data, (self.remote_ip, self.server_ports.control_port))

    def close(self):
        """
        Close all sockets. Calling close more than once has no effect.
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        for spec in self.sockets:
            spec.socket.close()
        logger.debug("Closed udp sockets: %s", self)
