"""Protocol constants, default ports and exit statuses."""

DEFAULT_PORT = 5555
# Port the driver uses when an operator attaches by hand; gets long timeouts.
DEBUG_PORT = 5555
DEFAULT_BIND_ADDRESS = "tcp://127.0.0.1"

DEBUG_STEP_TIMEOUT_S = 600.0
STEP_TIMEOUT_S = 60.0
DEBUG_HANDSHAKE_TIMEOUT_S = 600.0
HANDSHAKE_TIMEOUT_S = 120.0

STATE_MAGIC = b"SUST"
OBSERVATION_MAGIC = b"SUOB"
HANDSHAKE_READY = {"status": "ready"}

DEFAULT_FRAME_WIDTH = 120
DEFAULT_FRAME_HEIGHT = 80

EXIT_OK = 0
EXIT_CONNECTION_ERROR = 3
EXIT_HANDSHAKE_TIMEOUT = 4
EXIT_STEP_TIMEOUT = 5
EXIT_PROTOCOL_ERROR = 6
EXIT_CAPTURE_ERROR = 7
EXIT_SEND_ERROR = 8


def timeout_for_port(port: int) -> float:
    """Step timeout: long on the debug port, fast-fail everywhere else."""
    return DEBUG_STEP_TIMEOUT_S if int(port) == DEBUG_PORT else STEP_TIMEOUT_S


def handshake_timeout_for_port(port: int) -> float:
    return DEBUG_HANDSHAKE_TIMEOUT_S if int(port) == DEBUG_PORT else HANDSHAKE_TIMEOUT_S
