"""Driver-side client (REQ socket).

This is the external stepper's half of the protocol: it sends the handshake,
then one state request per physics step and blocks for the matching
observation.
"""

from __future__ import annotations

import logging
from typing import Optional

import zmq

from simbridge.common.errors import ChannelConnectionError, HandshakeTimeoutError, StepTimeoutError
from simbridge.common.schemas import Observation, SimulatedUserState, TimeOptions

from .codec import decode_observation, decode_ready, encode_handshake, encode_state

logger = logging.getLogger(__name__)


class DriverClient:
    def __init__(self, *, server_url: str = "tcp://127.0.0.1:5555", timeout_s: float = 60.0) -> None:
        self.server_url = str(server_url)
        self.timeout_s = float(timeout_s)

        self.context = zmq.Context()
        self.socket = self.context.socket(zmq.REQ)
        self.socket.setsockopt(zmq.LINGER, 0)
        try:
            self.socket.connect(self.server_url)
        except zmq.ZMQError as e:
            self.close()
            raise ChannelConnectionError(f"cannot connect to {self.server_url}: {e}") from e
        self.steps = 0
        logger.info("DriverClient connected to %s", self.server_url)

    def _request(self, payload: bytes) -> Optional[bytes]:
        self.socket.send(payload)
        if not self.socket.poll(timeout=int(self.timeout_s * 1000)):
            return None
        return self.socket.recv()

    def handshake(self, options: TimeOptions) -> None:
        reply = self._request(encode_handshake(options))
        if reply is None:
            raise HandshakeTimeoutError(f"host did not acknowledge handshake within {self.timeout_s:.1f}s")
        decode_ready(reply)

    def step(self, state: SimulatedUserState) -> Observation:
        reply = self._request(encode_state(state))
        if reply is None:
            raise StepTimeoutError(f"no observation within {self.timeout_s:.1f}s (step {self.steps})")
        self.steps += 1
        return decode_observation(reply)

    def close(self) -> None:
        if self.socket is not None:
            self.socket.close(0)
            self.socket = None
        if self.context is not None:
            self.context.term()
            self.context = None


__all__ = ["DriverClient"]
