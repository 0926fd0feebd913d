"""
Read raw pcm data (16 bit little endian, stereo, 44100 Hz) from a file like object and hand it to a sink in real time.
No decoding is done, convert other formats before, e.g.: ffmpeg -i song.mp3 -f s16le -ac 2 -ar 44100 -
"""
import time
from logging import getLogger
from threading import Timer, Event

from ..config import SAMPLING_RATE, FRAMES_PER_PACKET, BYTES_PER_PACKET, STREAM_LATENCY
from ..util import EventHook

logger = getLogger("RAOPSessionLogger")

READ_AUDIO_THREAD_NAME = "raopstream-read_audio-thread"


def packets_to_ms(packets):
    """
    Convert a number of packets to milliseconds.
    :param packets: number of packets
    :return: milliseconds
    """
    return packets * (FRAMES_PER_PACKET * 1000) / SAMPLING_RATE


def ms_to_packets(millisec):
    """
    Convert milliseconds to a number of packets.
    :param millisec: milliseconds
    :return: number of packets
    """
    return int(millisec * SAMPLING_RATE // (FRAMES_PER_PACKET * 1000))


def milliseconds_since_start(start):
    return (time.monotonic() - start) * 1000


class PcmStreamSource(object):
    """
    Cut a pcm stream into frames of BYTES_PER_PACKET bytes.
    Available Events:
        - on_stream_started
        - on_stream_ended(packets)

    Each time the reader runs, all packets which should have been played since the start are read in a burst.
    """

    def __init__(self, stream, sink, realtime=True):
        """
        :param stream: binary file like object
        :param sink: callable which receives each frame, e.g. CaptureBuffer.push
        :param realtime: False to read the whole stream as fast as possible
        """
        self.on_stream_started = EventHook()
        self.on_stream_ended = EventHook()

        self.stream = stream
        self.sink = sink
        self.realtime = realtime

        # number of packets read so far
        self.packets = 0

        self.is_streaming = False
        self.timer = None
        self._burst_time_ref = None
        self._finished = Event()

    def start(self):
        """
        Start reading the stream in a background thread.
        """
        if self.is_streaming:
            return False

        self.is_streaming = True
        self._finished.clear()
        self._burst_time_ref = time.monotonic()

        self._schedule(0)
        self.on_stream_started.fire()
        return True

    def stop(self):
        """
        Stop reading the stream.
        """
        if not self.is_streaming:
            return False

        self.is_streaming = False
        if self.timer:
            self.timer.cancel()
            self.timer = None
        self._finished.set()
        return True

    def join(self, timeout=None):
        """
        Wait until the stream ended or was stopped.
        :return: True if the stream ended, False on a timeout
        """
        return self._finished.wait(timeout)

    def _schedule(self, delay):
        self.timer = Timer(delay, self._read_audio)
        self.timer.name = READ_AUDIO_THREAD_NAME
        self.timer.daemon = True
        self.timer.start()

    def _read_frame(self):
        """
        :return: next frame, padded with silence at the end of the stream or empty bytes if the stream ended
        """
        data = b""
        while len(data) < BYTES_PER_PACKET:
            chunk = self.stream.read(BYTES_PER_PACKET - len(data))
            if not chunk:
                break
            data += chunk

        if data and len(data) < BYTES_PER_PACKET:
            data += bytes(BYTES_PER_PACKET - len(data))
        return data

    def _read_audio(self):
        """
        Callback to repeatably read audio.
        """
        if not self.is_streaming:
            return

        if self.realtime:
            # the number of the packet which should be playing now
            current_packet = ms_to_packets(milliseconds_since_start(self._burst_time_ref)) + 1
        else:
            current_packet = None

        while self.is_streaming and (current_packet is None or self.packets < current_packet):
            pcm = self._read_frame()
            if not pcm:
                logger.info("Reached the end of the pcm stream after %s packets (%.1f s).", self.packets,
                            packets_to_ms(self.packets) / 1000)
                self.is_streaming = False
                self._finished.set()
                self.on_stream_ended.fire(self.packets)
                return

            self.sink(pcm)
            self.packets += 1

        # schedule next burst
        if self.is_streaming:
            self._schedule(STREAM_LATENCY)
