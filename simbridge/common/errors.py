"""Bridge error kinds.

Every error is fatal for the session: there is no reconnect or resync. Each
kind carries the process exit status used when the host runs in batch mode.
"""

from __future__ import annotations

from .protocol import (
    EXIT_CAPTURE_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_HANDSHAKE_TIMEOUT,
    EXIT_PROTOCOL_ERROR,
    EXIT_SEND_ERROR,
    EXIT_STEP_TIMEOUT,
)


class BridgeError(Exception):
    """Base class for all session-fatal bridge failures."""

    exit_status: int = 1


class ChannelConnectionError(BridgeError, ConnectionError):
    """Transport could not be opened (bind failure, bad endpoint)."""

    exit_status = EXIT_CONNECTION_ERROR


class HandshakeTimeoutError(BridgeError, TimeoutError):
    exit_status = EXIT_HANDSHAKE_TIMEOUT


class StepTimeoutError(BridgeError, TimeoutError):
    exit_status = EXIT_STEP_TIMEOUT


class ProtocolError(BridgeError):
    """Malformed or out-of-order message."""

    exit_status = EXIT_PROTOCOL_ERROR


class SendError(BridgeError):
    exit_status = EXIT_SEND_ERROR


class CaptureError(BridgeError):
    """Frame capture or image encoding failed; an observation without a frame is useless."""

    exit_status = EXIT_CAPTURE_ERROR


__all__ = [
    "BridgeError",
    "CaptureError",
    "ChannelConnectionError",
    "HandshakeTimeoutError",
    "ProtocolError",
    "SendError",
    "StepTimeoutError",
]
