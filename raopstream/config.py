DEFAULT_RTSP_TIMEOUT = 5  # RTSP servers are considered gone if no reply is received before the timeout (in seconds)
DEFAULT_RTSP_PORT = 7000
SYNC_INTERVAL = 3.0  # wall clock interval of the periodic sync sender (in seconds), None disables it
STREAM_LATENCY = 0.05  # pcm streams are read in bursts periodically (in seconds)

# local udp ports, None binds an ephemeral port
DEFAULT_CONTROL_PORT = None
DEFAULT_TIMING_PORT = None

# Number of captured frames kept in memory before the oldest one is dropped (64 packets ~ 0.5 seconds)
CAPTURE_QUEUE_SIZE = 64


# Do not change this values unless you know what you are doing. All of the values below are more or less constant for
# AirTunes v2.
FRAMES_PER_PACKET = 352
SAMPLING_RATE = 44100  # should always be 44100 for AirTunes v2
CHANNELS = 2
BYTES_PER_SAMPLE = 2
BYTES_PER_PACKET = FRAMES_PER_PACKET * CHANNELS * BYTES_PER_SAMPLE
SYNC_PERIOD = 125  # UDP sync packets are sent to the receiver every SYNC_PERIOD audio packets

# Minimum latency announced in the SDP and subtracted from the rtp timestamp in sync packets
RAOP_LATENCY_MIN = 11025

RTP_PAYLOAD_TYPE = 96
