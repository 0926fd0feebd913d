"""
Stream raw pcm audio (16 bit little endian, stereo, 44100 Hz) to an airplay receiver.
Usage:
    ffmpeg -i song.mp3 -f s16le -ac 2 -ar 44100 - | python main.py "Living Room"
    python main.py --host 192.168.0.10 --file song.pcm
"""
import sys
import logging
import argparse
from time import sleep
from getpass import getpass

import keyring

from raopstream import RAOPServiceListener, RaopSession, CaptureBuffer, PcmStreamSource
from raopstream.config import DEFAULT_RTSP_PORT
from raopstream.util import set_logs_enabled, set_loglevel, random_hex, LOG
from raopstream.exceptions import PairingFailedError, PairingRequiredError

# keyring service name used to remember our client identity for each receiver
KEYCHAIN = "raopstream"

# number of wrong pin codes before we give up
MAX_PIN_ATTEMPTS = 3


def parse_args():
    parser = argparse.ArgumentParser(description="Stream raw pcm audio to an airplay receiver.")
    parser.add_argument("name", nargs="?", help="receiver name, the first receiver found if missing")
    parser.add_argument("--host", help="connect to this address instead of searching the receiver")
    parser.add_argument("--port", type=int, default=DEFAULT_RTSP_PORT, help="rtsp port used with --host")
    parser.add_argument("--file", help="raw pcm file, stdin if missing")
    parser.add_argument("--volume", type=float, default=None, help="volume between 0.0 and 1.0")
    parser.add_argument("--timeout", type=float, default=5, help="seconds to search for receivers")
    parser.add_argument("--debug", action="store_true", help="log all rtsp requests and packets")
    return parser.parse_args()


def find_receiver(name, timeout):
    """
    Search the receiver for timeout seconds.
    :return: ReceiverInfo or None
    """
    listener = RAOPServiceListener()
    listener.on_connect += lambda receiver: print("Found receiver: {0} ({1}:{2})".format(*receiver))
    listener.start_listening()
    try:
        sleep(timeout)
        if name:
            return listener.find(name)
        return next(iter(listener.devices.values()), None)
    finally:
        listener.stop_listening()


def connect(host, port, keychain_name, volume):
    """
    Connect to the receiver and pair with a pin code if required.
    :return: streaming RaopSession
    """
    # reuse the identity we paired with last time
    client_instance = keyring.get_password(KEYCHAIN, keychain_name)
    if not client_instance:
        client_instance = random_hex(8)

    for attempt in range(MAX_PIN_ATTEMPTS):
        session = RaopSession(host, port, client_instance=client_instance, initial_volume=volume)
        try:
            session.connect(pin_callback=lambda: getpass("Enter the pin code shown on {0}: ".format(keychain_name)))
        except PairingFailedError as e:
            print("Pairing failed: {0}".format(e))
            continue

        if session.pairing:
            keyring.set_password(KEYCHAIN, keychain_name, client_instance)
        return session

    raise PairingRequiredError("Could not pair with {0} after {1} attempts.".format(keychain_name, MAX_PIN_ATTEMPTS))


def main():
    args = parse_args()

    set_logs_enabled(LOG.ALL)
    if args.debug:
        set_loglevel(LOG.ALL, logging.DEBUG)
    else:
        set_loglevel(LOG.ALL, logging.WARNING)
        set_loglevel(LOG.SESSION | LOG.PAIRING, logging.INFO)

    if args.host:
        host, port, name = args.host, args.port, args.name or args.host
    else:
        receiver = find_receiver(args.name, args.timeout)
        if not receiver:
            print("No receiver found.")
            return 1
        name, host, port = receiver

    session = connect(host, port, name, args.volume)

    stream = open(args.file, "rb") if args.file else sys.stdin.buffer
    buffer = CaptureBuffer(session.send_frame)
    source = PcmStreamSource(stream, buffer.push)
    try:
        buffer.start_buffering()
        source.start()
        source.join()
        buffer.finish()
        buffer.join()
    except KeyboardInterrupt:
        source.stop()
        buffer.stop_buffering()
    finally:
        session.stop()
        if args.file:
            stream.close()

    if buffer.dropped:
        print("Dropped {0} frames.".format(buffer.dropped))
    return 0


if __name__ == "__main__":
    sys.exit(main())
