"""
Stream audio to a single AirPlay receiver.

The session performs the rtsp handshake (OPTIONS, optional pairing, ANNOUNCE, SETUP, RECORD), owns the udp
transport and the rtp counters and sends one ALAC encoded rtp packet for each pcm frame.
See: https://nto.github.io/AirPlay.html#audio
"""
from logging import getLogger
from threading import Lock, Thread

from .alac import ALACEncoder
from .config import DEFAULT_RTSP_PORT, DEFAULT_RTSP_TIMEOUT, RAOP_LATENCY_MIN, SYNC_INTERVAL, SYNC_PERIOD, \
    DEFAULT_CONTROL_PORT, DEFAULT_TIMING_PORT, BYTES_PER_PACKET, FRAMES_PER_PACKET, SAMPLING_RATE, CHANNELS
from .crypto import CryptoContext
from .exceptions import HandshakeFailedError, HandshakeNotFinishedError, PairingRequiredError, PairingFailedError, \
    SessionClosedError, SessionAlreadyConnectedError, TransportError, BadResponseError
from .pairingnegotiator import PairingNegotiator
from .rtp import AudioPacket
from .rtsp import RTSPClient, USER_AGENT
from .sessionstate import SessionState, SessionIds, Idle, Connected, PairingInProgress, Announced, TransportReady, \
    Streaming, Stopped, Failed, TERMINAL_STATES, TRANSPORT_STATES
from .udp import TransportEndpoints, TimingSyncEngine, parse_transport_header
from .util import EventHook, random_int, random_hex, random_uint32, low16, low32, volume_to_db, \
    parse_plist_from_bytes

logger = getLogger("RAOPSessionLogger")

TRANSPORT = "RTP/AVP/UDP;unicast;interleaved=0-1;mode=record;control_port={0};timing_port={1}"

# stages in which the receiver knows about our session and should get a TEARDOWN
TEARDOWN_STATES = (SessionState.ANNOUNCED, SessionState.TRANSPORT_READY, SessionState.STREAMING)


class RaopSession(object):
    """
    Single use streaming session with one receiver.
    Available Events:
        - on_state_changed(old_state, new_state)
        - on_connected
        - on_error(error)
    Usage:
        session = RaopSession("192.168.0.10", 7000)
        session.connect(pin_callback=lambda: input("pin: "))
        session.send_frame(pcm)
        session.stop()
    """

    def __init__(self, host, port=DEFAULT_RTSP_PORT, session_id=None, client_instance=None, active_remote=None,
                 timeout=DEFAULT_RTSP_TIMEOUT, user_agent=USER_AGENT, latency=RAOP_LATENCY_MIN,
                 sync_interval=SYNC_INTERVAL, control_port=DEFAULT_CONTROL_PORT, timing_port=DEFAULT_TIMING_PORT,
                 initial_volume=None, auth_setup=True, legacy_pair_setup=False, silence_frames=0,
                 crypto_context=None):
        """
        :param host: ip address or hostname of the receiver
        :param port: rtsp port of the receiver
        :param session_id: decimal session id used in the SDP and request urls, random if None
        :param client_instance: 16 hex characters identifying this client, random if None. Keep it to stay paired.
        :param active_remote: Active-Remote header value, random if None
        :param timeout: seconds to wait for each rtsp response
        :param user_agent: User-Agent header value
        :param latency: minimum latency in samples announced to the receiver
        :param sync_interval: seconds between two periodic sync packets, None disables them
        :param control_port: first local control port to try, None for an ephemeral port
        :param timing_port: first local timing port to try, None for an ephemeral port
        :param initial_volume: volume between 0.0 and 1.0 which is set after RECORD, None keeps the receivers volume
        :param auth_setup: perform the X25519 /auth-setup exchange before ANNOUNCE
        :param legacy_pair_setup: use the /pair-setup exchange instead of /auth-setup
        :param silence_frames: number of silent frames to send right after RECORD
        :param crypto_context: CryptoContext used for pairing, a new one if None
        """
        self.host = host
        self.port = port
        self.latency = latency
        self.sync_interval = sync_interval
        self.control_port = control_port
        self.timing_port = timing_port
        self.initial_volume = initial_volume
        self.use_auth_setup = auth_setup
        self.legacy_pair_setup = legacy_pair_setup
        self.silence_frames = silence_frames
        self.crypto = crypto_context or CryptoContext()

        self.on_state_changed = EventHook()
        self.on_connected = EventHook()
        self.on_error = EventHook()

        self._ids = SessionIds(session_id=str(session_id or random_int(9)),
                               client_instance=client_instance or random_hex(8),
                               active_remote=str(active_remote or random_int(9)))

        self._rtsp = RTSPClient(host, port, user_agent=user_agent, timeout=timeout)
        self._encoder = ALACEncoder()
        self._stage = Idle()
        self._stage_lock = Lock()
        self._send_lock = Lock()

        self._client_ip = None
        self._remote_ip = None
        self._url = None
        self._transport = None
        self._sync = None

        # result of /auth-setup or /pair-setup, None if it was not performed
        self.auth_result = None
        # srp client of the last successful pin pairing
        self.pairing = None

        # rtp state, only written by the frame sender
        self._seq = 0
        self._timestamp = 0
        self._ssrc = random_uint32()
        self._frames_sent = 0
        self._first_sync_sent = False

        # latency reported by the receiver in the RECORD response
        self.audio_latency = latency

        self.volume = None
        self._volume_db = None

    def __str__(self):
        return "{0}<{1}:{2}>: state={3}, session_id={4}, client_instance={5}, seq={6}, rtptime={7}".format(
            self.__class__.__name__, self.host, self.port, self.state, self._ids.session_id,
            self._ids.client_instance, self._seq, self._timestamp)

    # region properties
    @property
    def stage(self):
        return self._stage

    @property
    def state(self):
        return self._stage.state

    @property
    def ids(self):
        return self._ids

    @property
    def is_streaming(self):
        return self.state == SessionState.STREAMING

    @property
    def sequence_number(self):
        return self._seq

    @property
    def timestamp(self):
        return self._timestamp

    @property
    def ssrc(self):
        return self._ssrc

    @property
    def frames_sent(self):
        return self._frames_sent

    @property
    def transport(self):
        """
        :return: TransportEndpoints if SETUP finished, otherwise None
        """
        stage = self._stage
        return stage.transport if stage.state in TRANSPORT_STATES else None

    @property
    def volume_db(self):
        """
        :return: last volume sent to the receiver in dB or None
        """
        return self._volume_db
    # endregion

    # region helper
    def _set_stage(self, stage):
        """
        Change the current stage and inform all listeners.
        :raises SessionClosedError: if the session was stopped in the meantime
        """
        with self._stage_lock:
            old = self._stage
            if old.state in TERMINAL_STATES:
                raise SessionClosedError("Session was closed while changing to {0}.".format(stage.state))
            self._stage = stage

        logger.info("Session %s: %s -> %s", self._ids.session_id, old.state, stage.state)
        self.on_state_changed.fire(old.state, stage.state)

    def _get_default_header(self, stage=None):
        """
        Default headers required for an rtsp request.
        :param stage: stage to read the server session from, the current stage if None
        :return: header dictionary
        """
        header = {
            "DACP-ID": self._ids.client_instance,
            "Client-Instance": self._ids.client_instance,
            "Active-Remote": self._ids.active_remote,
        }

        server_session = getattr(stage or self._stage, "server_session", None)
        if server_session:
            header["Session"] = server_session

        return header

    def _send(self, method, url=None, headers=None, body=None):
        header = self._get_default_header()
        header.update(headers or {})
        return self._rtsp.send_request(method, url or self._url, header, body=body)

    def _release_resources(self):
        """
        Close the udp transport, stop the listeners and close the rtsp connection.
        """
        if self._transport:
            self._transport.close()
        if self._sync:
            self._sync.stop()
        self._rtsp.close()

    def _fail(self, error):
        """
        Release every resource and change to the Failed stage.
        """
        self._release_resources()

        with self._stage_lock:
            if self._stage.state in TERMINAL_STATES:
                # stop() was called while connecting
                return
            old, self._stage = self._stage, Failed(error)

        logger.error("Session %s failed in %s: %s", self._ids.session_id, old.state, error)
        self.on_state_changed.fire(old.state, SessionState.FAILED)
        self.on_error.fire(error)
    # endregion

    # region handshaking requests
    def _options(self):
        return self._send("OPTIONS", "*")

    def _announce(self):
        body = "v=0\r\n" \
               "o=iTunes {0} 0 IN IP4 {1}\r\n" \
               "s=iTunes\r\n" \
               "c=IN IP4 {2}\r\n" \
               "t=0 0\r\n" \
               "m=audio 0 RTP/AVP 96\r\n" \
               "a=rtpmap:96 AppleLossless\r\n" \
               "a=fmtp:96 {3} 0 16 40 10 14 {4} 255 0 0 {5}\r\n" \
               "a=min-latency:{6}\r\n".format(self._ids.session_id, self._client_ip, self._remote_ip,
                                              FRAMES_PER_PACKET, CHANNELS, SAMPLING_RATE, self.latency)
        return self._send("ANNOUNCE", headers={"Content-Type": "application/sdp"}, body=body)

    def _setup(self, transport):
        header = {"Transport": TRANSPORT.format(transport.control.port, transport.timing.port)}
        return self._send("SETUP", headers=header)

    def _record(self):
        header = {
            "Range": "npt=0-",
            "RTP-Info": "seq={0};rtptime={1}".format(self._seq, self._timestamp)
        }
        return self._send("RECORD", headers=header)
    # endregion

    # region connect
    def connect(self, pin_callback=None):
        """
        Perform the complete handshake. On success the session is streaming.
        :param pin_callback: callable returning the pin code shown by the receiver, only called if a pairing is
                             required
        :raises SessionClosedError: if the session was already stopped or failed
        :raises PairingRequiredError: if the receiver requires a pin code but no pin_callback is given
        :raises PairingFailedError: if the pairing failed
        :raises HandshakeFailedError: if the receiver rejected ANNOUNCE, SETUP or RECORD
        :raises RTSPConnectionError: if the receiver can not be reached or does not answer in time
        """
        self._check_connectable()

        try:
            self._connect(pin_callback)
        except Exception as e:
            self._fail(e)
            raise

        logger.info("Session ready:\n%s", self)
        self.on_connected.fire()

    def connect_async(self, pin_callback=None):
        """
        Perform the handshake on a background thread. The result is reported by on_connected or on_error.
        :return: started thread
        """
        self._check_connectable()

        t = Thread(target=self._connect_worker, args=(pin_callback,), name="raopstream-connect-thread")
        t.daemon = True
        t.start()
        return t

    def _connect_worker(self, pin_callback):
        try:
            self.connect(pin_callback)
        except SessionAlreadyConnectedError as e:
            self.on_error.fire(e)
        except Exception as e:
            # already reported by on_error
            logger.debug("Asynchronous connect failed: %s", e)

    def _check_connectable(self):
        state = self.state
        if state in TERMINAL_STATES:
            raise SessionClosedError("Session is {0}, create a new session to reconnect.".format(state))
        if state != SessionState.IDLE:
            raise SessionAlreadyConnectedError("Session is already {0}.".format(state))

    def _connect(self, pin_callback):
        ids = self._ids

        # region connect
        self._rtsp.connect()
        self._client_ip = self._rtsp.local_address
        self._remote_ip = self._rtsp.peer_address
        self._url = "rtsp://{0}/{1}".format(self._client_ip, ids.session_id)
        negotiator = PairingNegotiator(self._rtsp, self.crypto, self._get_default_header())
        self._set_stage(Connected(ids, self._client_ip))
        # endregion

        # region options
        res = self._options()

        # Forbidden => pin code required
        if res.code == 403:
            self._pair(negotiator, pin_callback)
            res = self._options()
            if res.code == 403:
                raise PairingFailedError("Receiver still requires a pairing after pairing successfully.")
        else:
            self._authenticate(negotiator)

        if res.code != 200:
            logger.warning("OPTIONS answered with code %s, continuing.", res.code)
        # endregion

        # region announce
        res = self._announce()
        if res.code == 403:
            if self.pairing:
                raise PairingFailedError("Receiver rejected ANNOUNCE after pairing successfully.")
            self._pair(negotiator, pin_callback)
            res = self._announce()

        if res.code != 200:
            raise HandshakeFailedError("ANNOUNCE failed with code {0}.".format(res.code), res.code)
        self._set_stage(Announced(ids, self._client_ip))
        # endregion

        # region setup
        transport = TransportEndpoints(self._remote_ip, self.control_port, self.timing_port)
        self._transport = transport
        self._sync = TimingSyncEngine(transport, lambda: self._timestamp, latency=self.latency,
                                      sync_interval=self.sync_interval)
        self._sync.start_listening()

        res = self._setup(transport)
        if res.code != 200:
            raise HandshakeFailedError("SETUP failed with code {0}.".format(res.code), res.code)

        try:
            server_ports = parse_transport_header(res.get_header("Transport", ""))
        except ValueError as e:
            raise HandshakeFailedError("Malformed SETUP response: {0}".format(e), res.code)

        transport.set_server_ports(server_ports)
        server_session = res.get_header("Session")
        logger.info("Receiver ports: %s, session: %s", server_ports, server_session)
        self._set_stage(TransportReady(ids, self._client_ip, transport, server_session))
        # endregion

        # region record
        if self._sync.send_sync(self._timestamp, is_first=True):
            self._first_sync_sent = True

        res = self._record()
        if res.code != 200:
            raise HandshakeFailedError("RECORD failed with code {0}.".format(res.code), res.code)

        audio_latency = res.get_header("Audio-Latency")
        if audio_latency is not None:
            try:
                self.audio_latency = int(audio_latency)
                logger.info("Received audio latency: %s", self.audio_latency)
            except ValueError:
                logger.warning("Ignoring malformed audio latency: %s", audio_latency)
        else:
            logger.info("Assume default audio latency: %s", self.audio_latency)

        self._set_stage(Streaming(ids, self._client_ip, transport, server_session))
        self._sync.start_periodic_sync()
        # endregion

        # region volume
        if self.initial_volume is not None:
            self.set_volume(self.initial_volume)
        # endregion

        for _ in range(self.silence_frames):
            self.send_frame(bytes(BYTES_PER_PACKET))

    def _authenticate(self, negotiator):
        """
        Best effort key exchange for receivers which do not require a pin code.
        """
        if not (self.use_auth_setup or self.legacy_pair_setup):
            return
        try:
            if self.legacy_pair_setup:
                self.auth_result = negotiator.pair_setup()
            else:
                self.auth_result = negotiator.auth_setup()
        except PairingFailedError as e:
            logger.warning("Continuing without key exchange: %s", e)

    def _pair(self, negotiator, pin_callback):
        """
        Perform the pin code pairing.
        """
        if pin_callback is None:
            raise PairingRequiredError("Receiver requires a pin code, please provide a pin_callback.")

        self._set_stage(PairingInProgress(self._ids, self._client_ip))
        negotiator.request_pin()
        pin = pin_callback()
        if not pin:
            raise PairingFailedError("No pin code entered.")

        self.pairing = negotiator.pair_with_pin(self._ids.client_instance, str(pin).strip())
    # endregion

    # region streaming
    def send_frame(self, pcm):
        """
        Encode and send one frame of 16 bit little endian stereo samples.
        Errors are logged, they are never raised.
        :param pcm: pcm data, usually BYTES_PER_PACKET bytes
        :return: True if the packet was sent, False otherwise
        """
        stage = self._stage
        if stage.state != SessionState.STREAMING:
            logger.debug("Dropping frame, session is %s.", stage.state)
            return False

        transport = stage.transport
        with self._send_lock:
            try:
                payload = self._encoder.encode(pcm)
            except ValueError as e:
                logger.warning("%s", TransportError("Could not encode frame {0}: {1}".format(self._seq, e)))
                return False

            is_first = self._frames_sent == 0
            packet = AudioPacket(self._seq, self._timestamp, self._ssrc, payload, is_first=is_first)

            # sync the first frame if RECORD did not and every SYNC_PERIOD frames
            needs_sync = not self._first_sync_sent if is_first else self._frames_sent % SYNC_PERIOD == 0

            self._seq = low16(self._seq + 1)
            self._timestamp = low32(self._timestamp + len(pcm) // 4)
            self._frames_sent += 1

            if needs_sync:
                try:
                    if self._sync.send_sync(packet.timestamp, is_first=not self._first_sync_sent):
                        self._first_sync_sent = True
                except OSError as e:
                    if not transport.is_closed:
                        logger.warning("Could not send sync before frame %s: %s", packet.rtp_header.seqnum, e)

            try:
                transport.send_audio(packet.to_data())
            except OSError as e:
                if transport.is_closed:
                    logger.debug("Dropping frame %s, transport closed.", packet.rtp_header.seqnum)
                else:
                    logger.warning("%s", TransportError("Could not send frame {0}: {1}".format(
                        packet.rtp_header.seqnum, e)))
                return False

        return True

    def set_volume(self, volume):
        """
        Change the receivers volume.
        :param volume: volume between 0.0 (mute) and 1.0
        :return: True on success, False otherwise
        :raises HandshakeNotFinishedError: if SETUP did not finish yet
        """
        if self.state not in TRANSPORT_STATES:
            raise HandshakeNotFinishedError("Can not set the volume in state {0}.".format(self.state))

        db = volume_to_db(volume)
        self.volume = min(max(float(volume), 0.0), 1.0)
        self._volume_db = db

        res = self._send("SET_PARAMETER", headers={"Content-Type": "text/parameters"},
                         body="volume: {0:.6f}\r\n".format(db))
        if res.code != 200:
            logger.warning("Receiver rejected volume %s dB with code %s.", db, res.code)
        return res.code == 200

    def request_info(self):
        """
        Ask the receiver for its capabilities.
        :return: dictionary with the receiver information, empty if the receiver did not send any
        """
        if self.state in TERMINAL_STATES or self.state == SessionState.IDLE:
            raise HandshakeNotFinishedError("Can not request info in state {0}.".format(self.state))

        res = self._send("GET", "/info")
        if res.code != 200 or not res.body:
            return {}
        try:
            return parse_plist_from_bytes(res.body)
        except ValueError as e:
            logger.warning("Malformed /info response: %s", e)
            return {}
    # endregion

    # region teardown
    def stop(self):
        """
        Send a TEARDOWN and release all resources. Calling stop more than once has no effect.
        """
        with self._stage_lock:
            old = self._stage
            if old.state in TERMINAL_STATES:
                return
            self._stage = Stopped()

        if old.state in TEARDOWN_STATES:
            try:
                self._rtsp.send_request("TEARDOWN", self._url, self._get_default_header(old))
            except (OSError, BadResponseError) as e:
                logger.debug("TEARDOWN failed: %s", e)

        self._release_resources()

        logger.info("Session %s: %s -> %s", self._ids.session_id, old.state, SessionState.STOPPED)
        self.on_state_changed.fire(old.state, SessionState.STOPPED)
    # endregion
