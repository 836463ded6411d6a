"""Per-tick advance/skip decision.

The host usually ticks faster than the driver steps. A tick only exchanges
messages once the host clock has reached the timestep the driver asked for in
its last request; otherwise the protocol stays silent for that tick.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from simbridge.common.schemas import SimulatedUserState


class GateDecision(str, Enum):
    ADVANCE = "advance"
    SKIP = "skip"


class TimestepGate:
    def decide(self, previous_state: Optional[SimulatedUserState], host_clock: float) -> GateDecision:
        if previous_state is not None and host_clock < previous_state.next_timestep:
            return GateDecision.SKIP
        return GateDecision.ADVANCE


__all__ = ["GateDecision", "TimestepGate"]
