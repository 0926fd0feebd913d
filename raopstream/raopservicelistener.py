"""
Listen for airplay receivers in the local network.
Available Events:
- on_connect(receiver_info)
- on_disconnect(receiver_info)
You can implement these methods to respond when a new airplay receiver is found
"""

import logging
from collections import namedtuple

from zeroconf import ServiceBrowser, Zeroconf

from .util import EventHook

RAOP_ZEROCONF_SERVICE = "_raop._tcp.local."


logger = logging.getLogger("RAOPServiceListenerLogger")

ReceiverInfo = namedtuple("ReceiverInfo", ["name", "host", "port"])


def receiver_name(service_name):
    """
    Readable name of a raop service.
    E.g: 2E3AB0A4D0E9@Living Room._raop._tcp.local. => Living Room
    :param service_name: zeroconf service name
    :return: receiver name
    """
    name = service_name
    if name.endswith("." + RAOP_ZEROCONF_SERVICE):
        name = name[:-len(RAOP_ZEROCONF_SERVICE)-1]
    return name.split("@", 1)[-1]


class RAOPServiceListener(object):
    """
    Browse for raop services and keep a ReceiverInfo for each one.
    """
    def __init__(self):
        super(RAOPServiceListener, self).__init__()
        # service name => ReceiverInfo
        self.devices = {}
        self._browser = None
        self._zeroconf = None
        self._owns_zeroconf = False

        self.on_connect = EventHook()
        self.on_disconnect = EventHook()

    def _load_receiver_info(self, zeroconf, type, name):
        info = zeroconf.get_service_info(type, name)
        if not info:
            logger.warning("Could not load airplay service information. Skipping device: %s", name)
            return None

        addresses = info.parsed_addresses()
        if not addresses:
            logger.warning("Airplay service %s has no address. Skipping device.", name)
            return None

        return ReceiverInfo(name=receiver_name(name), host=addresses[0], port=info.port)

    def remove_service(self, zeroconf, type, name):
        """
        Called when a service gets removed
        :param zeroconf: zeroconf instance
        :param type: service type
        :param name: name of the service
        """
        receiver = self.devices.pop(name, None)
        if not receiver:
            return
        logger.info("Remove airplay service: %s", name)
        self.on_disconnect.fire(receiver)

    def add_service(self, zeroconf, type, name):
        """
        Called when a new service is detected
        :param zeroconf: zeroconf instance
        :param type: service type
        :param name: name of the service
        """
        receiver = self._load_receiver_info(zeroconf, type, name)
        if not receiver:
            return

        self.devices[name] = receiver
        logger.info("Add airplay service: %s at %s:%s", name, receiver.host, receiver.port)
        self.on_connect.fire(receiver)

    def update_service(self, zeroconf, type, name):
        """
        Called when the address or port of a service changed.
        """
        receiver = self._load_receiver_info(zeroconf, type, name)
        if not receiver or self.devices.get(name) == receiver:
            return

        old = self.devices.get(name)
        self.devices[name] = receiver
        logger.info("Update airplay service: %s at %s:%s", name, receiver.host, receiver.port)
        if old:
            self.on_disconnect.fire(old)
        self.on_connect.fire(receiver)

    def find(self, name):
        """
        :param name: readable receiver name or service name
        :return: ReceiverInfo or None
        """
        if name in self.devices:
            return self.devices[name]
        for receiver in self.devices.values():
            if receiver.name == name:
                return receiver
        return None

    def start_listening(self, zeroconf=None):
        """
        Wait for receivers.
        :param zeroconf: zeroconf instance to use, a new one is created and closed by stop_listening if None
        """
        if self._browser:
            return
        self._owns_zeroconf = zeroconf is None
        self._zeroconf = zeroconf or Zeroconf()
        self._browser = ServiceBrowser(self._zeroconf, RAOP_ZEROCONF_SERVICE, self)

    def stop_listening(self):
        """
        Cancel waiting for receivers.
        """
        if self._browser:
            self._browser.cancel()
            self._browser = None
        if self._zeroconf and self._owns_zeroconf:
            self._zeroconf.close()
        self._zeroconf = None
