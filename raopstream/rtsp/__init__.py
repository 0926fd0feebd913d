"""
Classes in this package are used to create an RSTP connection to the receiver and exchange requests and responses.
"""
from .rtspclient import RTSPClient, USER_AGENT
from .rtsprequest import RTSPRequest
from .rtspresponse import RTSPResponse
from .rtspconnection import RTSPConnection

__all__ = ["RTSPClient", "RTSPRequest", "RTSPResponse", "RTSPConnection", "USER_AGENT"]
