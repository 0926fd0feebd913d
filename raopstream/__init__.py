"""
Stream live audio to AirPlay (RAOP) receivers.
For information about the protocol see:
- https://nto.github.io/AirPlay.html#audio
- https://git.zx2c4.com/Airtunes2/about/ (v2)
- https://htmlpreview.github.io/?https://github.com/philippe44/RAOP-Player/blob/master/doc/auth_protocol.html
"""

__version__ = "0.1.0"

from .raopservicelistener import RAOPServiceListener, ReceiverInfo
from .raopsession import RaopSession
from .sessionstate import SessionState, SessionIds
from .audio import CaptureBuffer, PcmStreamSource

__all__ = ["RAOPServiceListener", "ReceiverInfo", "RaopSession", "SessionState", "SessionIds", "CaptureBuffer",
           "PcmStreamSource", "__version__"]
