"""Host runtime: clock, timing configuration and the tick loop.

`HeadlessHost` is a reference host with no real renderer attached. It keeps
its own scaled clock; `fixed_time` advances in whole fixed-delta steps, which
is the value the timestep gate compares against the driver's `next_timestep`.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional, Protocol

from simbridge.common.protocol import EXIT_OK
from simbridge.common.schemas import TimeOptions

if TYPE_CHECKING:
    from .sync_loop import SyncLoop

logger = logging.getLogger(__name__)


class HostControl(Protocol):
    interactive: bool

    def quit(self, status: int) -> None:
        """Orderly termination with a process exit status."""

    def halt(self, reason: str, status: Optional[int] = None) -> None:
        """Stop ticking but keep the process alive for inspection."""


@dataclass(frozen=True)
class HostTiming:
    """Timing applied to the host once, right after the handshake."""

    time_scale: int
    target_frame_rate: int
    fixed_delta_time: float
    maximum_delta_time: float

    @classmethod
    def from_time_options(cls, options: TimeOptions) -> "HostTiming":
        return cls(
            time_scale=int(options.time_scale),
            target_frame_rate=int(options.target_frame_rate),
            fixed_delta_time=float(options.effective_delta_time),
            maximum_delta_time=float(options.maximum_delta_time),
        )

    @property
    def frame_delta_time(self) -> float:
        """Scaled time advanced per rendered frame, capped at the maximum delta."""
        return min(self.time_scale / float(self.target_frame_rate), self.maximum_delta_time)


class HeadlessHost:
    def __init__(self, *, interactive: bool = False) -> None:
        self.interactive = bool(interactive)
        self.timing: Optional[HostTiming] = None
        self.time = 0.0
        self.frame_count = 0
        self._fixed_steps = 0

        self.running = True
        self.halted = False
        self.halt_reason: Optional[str] = None
        self.exit_status: Optional[int] = None

    def configure(self, timing: HostTiming) -> None:
        if self.timing is not None:
            raise RuntimeError("host timing is set once per session")
        self.timing = timing
        logger.info(
            "Host timing: time_scale=%d target_frame_rate=%d fixed_delta_time=%.6f maximum_delta_time=%.6f",
            timing.time_scale,
            timing.target_frame_rate,
            timing.fixed_delta_time,
            timing.maximum_delta_time,
        )

    @property
    def fixed_time(self) -> float:
        if self.timing is None:
            return 0.0
        return self._fixed_steps * self.timing.fixed_delta_time

    def clock(self) -> float:
        return self.fixed_time

    def advance_frame(self) -> None:
        if self.timing is None:
            raise RuntimeError("host timing not configured")
        self.time += self.timing.frame_delta_time
        # Small epsilon so accumulated float error does not drop a whole fixed step.
        steps = int(math.floor(self.time / self.timing.fixed_delta_time + 1e-9))
        self._fixed_steps = max(self._fixed_steps, steps)
        self.frame_count += 1

    def quit(self, status: int) -> None:
        self.exit_status = int(status)
        self.running = False

    def halt(self, reason: str, status: Optional[int] = None) -> None:
        self.halted = True
        self.halt_reason = str(reason)
        if status is not None:
            self.exit_status = int(status)
        self.running = False

    def run(
        self,
        loop: "SyncLoop",
        *,
        max_ticks: Optional[int] = None,
        game_logic: Optional[Callable[[], None]] = None,
    ) -> int:
        """Tick until quit/halt (or `max_ticks`); always closes the loop's channel."""
        ticks = 0
        try:
            while self.running and (max_ticks is None or ticks < max_ticks):
                loop.tick(self.fixed_time, game_logic)
                self.advance_frame()
                ticks += 1
        finally:
            loop.close()
        logger.info(
            "Host loop stopped after %d ticks (fixed_time=%.4f, observations=%d)",
            ticks,
            self.fixed_time,
            loop.observations_sent,
        )
        return self.exit_status if self.exit_status is not None else EXIT_OK


__all__ = ["HeadlessHost", "HostControl", "HostTiming"]
