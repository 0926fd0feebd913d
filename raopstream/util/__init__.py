from .time import NtpTime
from .event import EventHook
from .helper import to_bytes, to_hex, to_unicode, hex_preview, write_plist_to_bytes, parse_plist_from_bytes
from .numeric import random_hex, random_int, random_uint32, low32, low16, volume_to_db
from .log import LOG, set_loglevel, set_logs_enabled


__all__ = ["EventHook", "NtpTime", "LOG", "set_loglevel", "set_logs_enabled", "random_int", "random_hex",
           "random_uint32", "low32", "low16", "volume_to_db", "to_bytes", "to_hex", "to_unicode", "hex_preview",
           "write_plist_to_bytes", "parse_plist_from_bytes"]
