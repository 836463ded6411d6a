"""One synchronization step per host tick.

Tick order:
  update(clock)   gate -> receive -> apply poses / quit / reset
  env.update()    game logic (reward, finished) runs every tick
  game_logic()    anything else the host does this tick
  late_update()   capture -> encode -> send, only if update() advanced

Any channel, capture or encoding failure is fatal for the session: the channel
is closed and the host either quits with the error's exit status or, when
interactive, halts for inspection.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol

from simbridge.bridge.codec import ObservationEncoder
from simbridge.bridge.zmq_channel import ChannelResult
from simbridge.common.errors import BridgeError, CaptureError, ProtocolError
from simbridge.common.schemas import SimulatedUserState, TimeOptions
from simbridge.env.lifecycle import GameEnvironment

from .anchors import StateApplier
from .capture import FrameCapture
from .gate import GateDecision, TimestepGate
from .host import HostControl

logger = logging.getLogger(__name__)


class StateChannel(Protocol):
    def receive(self) -> ChannelResult[SimulatedUserState]: ...

    def send(self, payload: bytes) -> ChannelResult[None]: ...

    def close(self) -> None: ...


class SyncLoop:
    def __init__(
        self,
        *,
        channel: StateChannel,
        applier: StateApplier,
        env: GameEnvironment,
        capture: FrameCapture,
        host: HostControl,
        time_options: TimeOptions,
        encoder: Optional[ObservationEncoder] = None,
        gate: Optional[TimestepGate] = None,
    ) -> None:
        self.channel = channel
        self.applier = applier
        self.env = env
        self.capture = capture
        self.host = host
        self.time_options = time_options
        self.encoder = encoder or ObservationEncoder()
        self.gate = gate or TimestepGate()

        self.last_state: Optional[SimulatedUserState] = None
        self.fatal_error: Optional[BridgeError] = None
        self.observations_sent = 0
        self.ticks = 0
        self._send_reply = False

    @property
    def stopped(self) -> bool:
        return self.fatal_error is not None

    def _fatal(self, error: BridgeError) -> None:
        self.fatal_error = error
        self._send_reply = False
        logger.error("Fatal bridge error (%s): %s", type(error).__name__, error)
        self.channel.close()
        if self.host.interactive:
            self.host.halt(f"{type(error).__name__}: {error}", error.exit_status)
        else:
            self.host.quit(error.exit_status)

    def update(self, host_clock: float) -> GateDecision:
        self._send_reply = False
        if self.stopped:
            return GateDecision.SKIP
        decision = self.gate.decide(self.last_state, host_clock)
        if decision is GateDecision.SKIP:
            return decision

        result = self.channel.receive()
        if not result.ok or result.value is None:
            self._fatal(result.error or ProtocolError("receive returned no state"))
            return decision
        state = result.value
        if self.last_state is not None and state.next_timestep < self.last_state.next_timestep:
            self._fatal(
                ProtocolError(
                    f"next_timestep went backwards ({self.last_state.next_timestep} -> {state.next_timestep})"
                )
            )
            return decision

        if self.last_state is None:
            logger.info(
                "First step received: next_timestep=%.4f timestep=%.4f time_scale=%d sample_frequency=%d",
                state.next_timestep,
                self.time_options.effective_delta_time,
                self.time_options.time_scale,
                self.time_options.sample_frequency,
            )
        self.last_state = state
        self._send_reply = True
        self.applier.apply(state)
        return decision

    def late_update(self) -> Optional[bytes]:
        """Capture, encode and send the observation for an advanced tick."""
        if not self._send_reply or self.last_state is None:
            return None
        self._send_reply = False

        try:
            frame = self.capture.capture()
        except BridgeError as e:
            self._fatal(e)
            return None
        except Exception as e:
            self._fatal(CaptureError(f"capture failed: {e}"))
            return None

        try:
            payload = self.encoder.encode(
                is_finished=self.env.is_finished or self.last_state.is_finished,
                reward=self.env.reward,
                frame=frame,
                time_feature=self.env.get_time_feature(),
                log_dict=self.env.get_log_dict(),
            )
        except BridgeError as e:
            self._fatal(e)
            return None

        result = self.channel.send(payload)
        if not result.ok:
            self._fatal(result.error or ProtocolError("send failed"))
            return None
        self.observations_sent += 1
        return payload

    def tick(self, host_clock: float, game_logic: Optional[Callable[[], None]] = None) -> GateDecision:
        decision = self.update(host_clock)
        if not self.stopped:
            self.env.update()
            if game_logic is not None:
                game_logic()
        self.late_update()
        self.ticks += 1
        return decision

    def close(self) -> None:
        self.channel.close()


__all__ = ["StateChannel", "SyncLoop"]
