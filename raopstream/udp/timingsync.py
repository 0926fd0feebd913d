"""
Respond to timing requests and send sync packets to the receiver.
Two background threads listen on the control and timing socket of a session, the sync packets are sent every
SYNC_PERIOD audio packets by the session and optionally on a fixed wall clock interval.
"""
from logging import getLogger
from select import select
from threading import Thread, Timer, Lock

from ..config import RAOP_LATENCY_MIN, SYNC_INTERVAL
from ..exceptions import ListenerError
from ..util import NtpTime, hex_preview
from .timingpacket import TimingPacket
from .controlpacket import SyncPacket, ResendPacket

timing_logger = getLogger("TimingLogger")
control_logger = getLogger("ControlLogger")

LISTEN_POLL_INTERVAL = 0.25  # seconds between two checks if the listener should stop
MAX_PACKET_SIZE = 2048


class TimingSyncEngine(object):
    """
    Timing and control side channel of a single session.
    """

    def __init__(self, transport, clock, latency=RAOP_LATENCY_MIN, sync_interval=SYNC_INTERVAL):
        """
        :param transport: TransportEndpoints of the session
        :param clock: callable returning the current rtp timestamp of the session (read only)
        :param latency: latency in samples which is subtracted from the rtp timestamp in sync packets
        :param sync_interval: seconds between two periodic sync packets or None to disable them
        """
        self._transport = transport
        self._clock = clock
        self.latency = latency
        self.sync_interval = sync_interval

        self._is_listening = False
        self._threads = []

        self._sync_timer = None
        self._sync_lock = Lock()
        self._is_syncing = False

        # number of sync packets sent
        self.sync_count = 0

    # region sync
    def send_sync(self, rtp_timestamp=None, is_first=False):
        """
        Send a sync packet to the receivers control port.
        :param rtp_timestamp: current rtp timestamp, defaults to the session clock
        :param is_first: True for the first sync packet of a stream
        :return: the sent SyncPacket or None if nothing was sent
        """
        if self._transport.is_closed:
            return None

        if rtp_timestamp is None:
            rtp_timestamp = self._clock()

        sync_packet = SyncPacket.create(is_first=is_first,
                                        now_minus_latency=rtp_timestamp - self.latency,
                                        now=rtp_timestamp,
                                        time_last_sync=NtpTime.get_timestamp())

        if not self._transport.send_control(sync_packet.to_data()):
            return None

        self.sync_count += 1
        control_logger.debug("Send sync packet to %s:\n%s", self._transport.remote_ip, sync_packet)
        return sync_packet

    def start_periodic_sync(self):
        """
        Start sending sync packets every sync_interval seconds.
        """
        if not self.sync_interval:
            return
        with self._sync_lock:
            if self._is_syncing:
                return
            self._is_syncing = True
            self._schedule_sync()

    def _schedule_sync(self):
        self._sync_timer = Timer(self.sync_interval, self._periodic_sync)
        self._sync_timer.name = "raopstream-sync-thread"
        self._sync_timer.daemon = True
        self._sync_timer.start()

    def _periodic_sync(self):
        """
        Callback to repeatably send sync packets.
        """
        try:
            self.send_sync()
        except OSError as e:
            if not self._transport.is_closed:
                control_logger.warning("Could not send periodic sync packet: %s", e)

        with self._sync_lock:
            if self._is_syncing and not self._transport.is_closed:
                self._schedule_sync()

    def stop_periodic_sync(self):
        with self._sync_lock:
            self._is_syncing = False
            if self._sync_timer:
                self._sync_timer.cancel()
                self._sync_timer = None
    # endregion

    # region listener
    @property
    def is_listening(self):
        return self._is_listening

    def start_listening(self):
        """
        Start a background thread to respond to timing packets and another one to listen to control packets.
        """
        if self._is_listening:
            return

        self._is_listening = True

        for spec, handler, logger in ((self._transport.timing, self._handle_timing, timing_logger),
                                      (self._transport.control, self._handle_control, control_logger)):
            t = Thread(target=self._listen, args=(spec, handler, logger),
                       name="raopstream-{0}_listener-thread".format(spec.name))
            t.daemon = True
            t.start()
            self._threads.append(t)

    def _listen(self, spec, handler, logger):
        """
        Receive packets until the socket is closed.
        :param spec: SocketSpecification to listen on
        :param handler: callback for each received packet
        :param logger: logger for this listener
        """
        logger.debug("Listening for %s packets on port %s", spec.name, spec.port)
        while self._is_listening:
            try:
                readable, _, _ = select([spec.socket], [], [], LISTEN_POLL_INTERVAL)
                if not readable:
                    continue
                data, addr = spec.socket.recvfrom(MAX_PACKET_SIZE)
            except (OSError, ValueError) as e:
                if self._transport.is_closed:
                    # socket closed
                    logger.debug("Stopped %s listener.", spec.name)
                else:
                    logger.error("%s", ListenerError("{0} listener failed: {1}".format(spec.name, e)))
                break

            # only listen to the receiver
            if addr[0] != self._transport.remote_ip:
                logger.debug("Ignoring %s packet from unknown host %s", spec.name, addr)
                continue

            try:
                handler(spec, data, addr)
            except OSError as e:
                if self._transport.is_closed:
                    break
                logger.warning("Could not answer %s packet from %s: %s", spec.name, addr, e)

    def _handle_timing(self, spec, data, addr):
        request = TimingPacket.parse(data)
        if not request:
            timing_logger.debug("Skipping unknown timing packet from %s: %s", addr, hex_preview(data))
            return

        timing_logger.debug("Received timing packet from %s:\n%s", addr, request)
        response = TimingPacket.create_reply(request)
        spec.socket.sendto(response.to_data(), addr)
        timing_logger.debug("Send timing packet to %s:\n%s", addr, response)

    def _handle_control(self, spec, data, addr):
        resend = ResendPacket.parse(data)
        if resend:
            control_logger.info("Receiver %s requested %s lost packets starting at %s, not served.", addr[0],
                                resend.count, resend.missed_seqnum)
            return
        control_logger.debug("Ignoring control packet from %s: %s", addr, hex_preview(data))

    def join(self, timeout=None):
        """
        Wait until all listener threads finished.
        """
        for t in self._threads:
            t.join(timeout)
    # endregion

    def stop(self):
        """
        Stop the periodic sync and the listeners. Close the transport before or while calling this.
        """
        self._is_listening = False
        self.stop_periodic_sync()
