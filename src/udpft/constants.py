from __future__ import annotations

SERVER_HOST = "127.0.0.1"
SERVER_PORT = 32000

CHUNK_SIZE = 100  # payload characters per Data message
ID_WIDTH = 4
ID_SPACE = 10_000  # ids wrap after 9999

MIN_THRESHOLD = 1
MAX_THRESHOLD = 50
DEFAULT_THRESHOLD = 20

CONTROL_TIMEOUT_MS = 5000
ACK_TIMEOUT_MS = 1000

RECV_BUFSIZE = 65535

DEFAULT_RESOURCE = "hamlet.txt"
DEFAULT_OUTPUT = "client_hamlet.txt"

EXIT_SUCCESS = 0
EXIT_ERROR = 1
