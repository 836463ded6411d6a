"""ZeroMQ request/reply channel on the host side.

The host binds a REP socket; the driver connects with REQ. REP enforces the
one-outstanding-request discipline at the socket level, and the channel also
tracks it so misuse surfaces as a ProtocolError instead of a ZMQ EFSM error.

Blocking calls return a ChannelResult instead of raising, so the caller
decides what a timeout means for the session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

import zmq

from simbridge.common.errors import (
    BridgeError,
    ChannelConnectionError,
    HandshakeTimeoutError,
    ProtocolError,
    SendError,
    StepTimeoutError,
)
from simbridge.common.protocol import DEFAULT_BIND_ADDRESS, handshake_timeout_for_port
from simbridge.common.schemas import SimulatedUserState, TimeOptions

from .codec import decode_handshake, decode_state, encode_ready

logger = logging.getLogger(__name__)

# Replies queued right before close (e.g. the one answering a quit request) still get flushed.
CLOSE_LINGER_MS = 1000

T = TypeVar("T")


class ChannelStatus(str, Enum):
    OK = "ok"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass(frozen=True)
class ChannelResult(Generic[T]):
    status: ChannelStatus
    value: Optional[T] = None
    error: Optional[BridgeError] = None

    @property
    def ok(self) -> bool:
        return self.status is ChannelStatus.OK

    @classmethod
    def success(cls, value: Optional[T] = None) -> "ChannelResult[T]":
        return cls(ChannelStatus.OK, value=value)

    @classmethod
    def timeout(cls, error: BridgeError) -> "ChannelResult[T]":
        return cls(ChannelStatus.TIMEOUT, error=error)

    @classmethod
    def failure(cls, error: BridgeError) -> "ChannelResult[T]":
        return cls(ChannelStatus.ERROR, error=error)


class ZmqChannel:
    """REP socket wrapper with handshake, step timeout and reply discipline."""

    def __init__(
        self,
        *,
        port: int,
        timeout_s: float,
        handshake_timeout_s: Optional[float] = None,
        bind_address: str = DEFAULT_BIND_ADDRESS,
    ) -> None:
        self.port = int(port)
        self.timeout_s = float(timeout_s)
        self.handshake_timeout_s = float(
            handshake_timeout_s if handshake_timeout_s is not None else handshake_timeout_for_port(self.port)
        )
        self.bind_address = str(bind_address)

        self.context: Optional[zmq.Context] = None
        self.socket: Optional[zmq.Socket] = None
        self.time_options: Optional[TimeOptions] = None

        self.messages_received = 0
        self.messages_sent = 0
        self._awaiting_reply = False
        self._closed = False

    @classmethod
    def open(
        cls,
        port: int,
        timeout_s: float,
        *,
        handshake_timeout_s: Optional[float] = None,
        bind_address: str = DEFAULT_BIND_ADDRESS,
    ) -> "ZmqChannel":
        """Bind a REP socket. `port=0` picks a free port (see `.port`)."""
        channel = cls(
            port=port,
            timeout_s=timeout_s,
            handshake_timeout_s=handshake_timeout_s,
            bind_address=bind_address,
        )
        channel._bind()
        return channel

    def _bind(self) -> None:
        self.context = zmq.Context()
        try:
            self.socket = self.context.socket(zmq.REP)
            self.socket.setsockopt(zmq.LINGER, CLOSE_LINGER_MS)
            if self.port == 0:
                self.port = self.socket.bind_to_random_port(self.bind_address)
            else:
                self.socket.bind(f"{self.bind_address}:{self.port}")
        except zmq.ZMQError as e:
            self.close()
            raise ChannelConnectionError(f"cannot bind {self.bind_address}:{self.port}: {e}") from e
        logger.info(
            "✅ ZMQ REP bound to %s:%d (step timeout %.0fs, handshake timeout %.0fs)",
            self.bind_address,
            self.port,
            self.timeout_s,
            self.handshake_timeout_s,
        )

    @property
    def endpoint(self) -> str:
        return f"{self.bind_address}:{self.port}"

    @property
    def awaiting_reply(self) -> bool:
        return self._awaiting_reply

    def _recv(self, timeout_s: float) -> Optional[bytes]:
        """Wait up to `timeout_s` for one message; None on timeout."""
        if self.socket is None:
            raise ProtocolError("channel is closed")
        if not self.socket.poll(timeout=int(timeout_s * 1000)):
            return None
        data = self.socket.recv()
        self.messages_received += 1
        return data

    def wait_for_handshake(self) -> ChannelResult[TimeOptions]:
        if self.time_options is not None:
            return ChannelResult.failure(ProtocolError("handshake already completed"))
        try:
            data = self._recv(self.handshake_timeout_s)
        except (ProtocolError, zmq.ZMQError) as e:
            return ChannelResult.failure(e if isinstance(e, ProtocolError) else ProtocolError(str(e)))
        if data is None:
            return ChannelResult.timeout(
                HandshakeTimeoutError(f"no handshake within {self.handshake_timeout_s:.1f}s on port {self.port}")
            )
        try:
            options = decode_handshake(data)
        except ProtocolError as e:
            return ChannelResult.failure(e)
        try:
            self.socket.send(encode_ready())  # type: ignore[union-attr]
        except zmq.ZMQError as e:
            return ChannelResult.failure(SendError(f"handshake acknowledgement failed: {e}"))
        self.messages_sent += 1
        self.time_options = options
        logger.info(
            "Handshake complete: time_scale=%d sample_frequency=%d timestep=%s fixed_delta_time=%s",
            options.time_scale,
            options.sample_frequency,
            options.timestep,
            options.fixed_delta_time,
        )
        return ChannelResult.success(options)

    def receive(self) -> ChannelResult[SimulatedUserState]:
        if self.time_options is None:
            return ChannelResult.failure(ProtocolError("state requested before handshake"))
        if self._awaiting_reply:
            return ChannelResult.failure(ProtocolError("previous request has not been answered"))
        try:
            data = self._recv(self.timeout_s)
        except (ProtocolError, zmq.ZMQError) as e:
            return ChannelResult.failure(e if isinstance(e, ProtocolError) else ProtocolError(str(e)))
        if data is None:
            return ChannelResult.timeout(
                StepTimeoutError(f"no state request within {self.timeout_s:.1f}s on port {self.port}")
            )
        self._awaiting_reply = True
        try:
            return ChannelResult.success(decode_state(data))
        except ProtocolError as e:
            return ChannelResult.failure(e)

    def send(self, payload: bytes) -> ChannelResult[None]:
        if not self._awaiting_reply:
            return ChannelResult.failure(ProtocolError("no outstanding request to reply to"))
        if self.socket is None:
            return ChannelResult.failure(SendError("channel is closed"))
        try:
            self.socket.send(bytes(payload))
        except zmq.ZMQError as e:
            return ChannelResult.failure(SendError(f"send failed: {e}"))
        self._awaiting_reply = False
        self.messages_sent += 1
        return ChannelResult.success()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            if self.socket is not None:
                self.socket.close()
        finally:
            self.socket = None
            if self.context is not None:
                self.context.term()
            self.context = None
        logger.info("ZMQ channel closed (%d received, %d sent)", self.messages_received, self.messages_sent)


__all__ = ["ChannelResult", "ChannelStatus", "ZmqChannel"]
