"""
Buffer between a capture producer and a session. The producer never blocks, if the buffer is full the oldest frame is
dropped. A background thread delivers the buffered frames to the sink.
Available Events:
- on_status_changed(new_status)
"""
from enum import Enum
from logging import getLogger
from queue import Queue, Full, Empty
from threading import Thread

from ..config import CAPTURE_QUEUE_SIZE
from ..util import EventHook

logger = getLogger("RAOPSessionLogger")

# seconds between two checks if the buffer should stop
POLL_INTERVAL = 0.25

# marks the end of the captured stream
_END_OF_STREAM = object()


class BufferStatus(Enum):
    WAITING = 0
    BUFFERING = 1
    FULL = 2
    END = 3


class CaptureBuffer(Thread):

    def __init__(self, sink, maxsize=CAPTURE_QUEUE_SIZE):
        """
        :param sink: callable which receives each frame, e.g. RaopSession.send_frame
        :param maxsize: maximum amount of frames in the buffer
        """
        Thread.__init__(self, name="raopstream-capture_buffer-thread")

        self.on_status_changed = EventHook()

        # run this thread as daemon
        self.daemon = True

        self.sink = sink
        self.buf = Queue(maxsize=maxsize)
        self.status = BufferStatus.WAITING

        # number of frames dropped because the buffer was full
        self.dropped = 0
        # number of frames delivered to the sink
        self.delivered = 0

    def push(self, pcm):
        """
        Add a captured frame. This method never blocks.
        :param pcm: pcm frame
        :return: False if an older frame had to be dropped, True otherwise
        """
        if self.status == BufferStatus.END:
            return False
        return self._put(pcm)

    def _put(self, item):
        dropped = False
        while True:
            try:
                self.buf.put_nowait(item)
                break
            except Full:
                pass

            if self.status != BufferStatus.FULL:
                self._set_status(BufferStatus.FULL)

            try:
                self.buf.get_nowait()
                self.dropped += 1
                dropped = True
            except Empty:
                # the pump took a frame in the meantime
                pass

        if dropped:
            logger.debug("Capture buffer full, dropped %s frames so far.", self.dropped)
        return not dropped

    def start_buffering(self):
        """
        Start delivering frames to the sink.
        """
        self.start()
        self._set_status(BufferStatus.BUFFERING)

    def finish(self):
        """
        Deliver all buffered frames and stop afterwards. Blocks until the buffer has space for the end marker.
        """
        self.buf.put(_END_OF_STREAM, block=True)

    def stop_buffering(self):
        """
        Stop delivering frames. Buffered frames are discarded.
        """
        self._set_status(BufferStatus.END)

    def _set_status(self, status):
        self.status = status
        self.on_status_changed.fire(self.status)

    def run(self):
        """
        Deliver the buffered frames.
        """
        while self.status != BufferStatus.END:
            try:
                pcm = self.buf.get(timeout=POLL_INTERVAL)
            except Empty:
                continue

            if pcm is _END_OF_STREAM:
                break

            if self.status == BufferStatus.FULL:
                self._set_status(BufferStatus.BUFFERING)

            self.sink(pcm)
            self.delivered += 1

        # reached the end of the stream
        if self.status != BufferStatus.END:
            self._set_status(BufferStatus.END)
