"""Shared data contracts for SimBridge.

Pydantic models cover the values that arrive as loose JSON/env input
(handshake timing, process configuration). The per-step messages are plain
frozen dataclasses because they are decoded from a fixed binary layout and
never need coercion.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .protocol import (
    DEFAULT_BIND_ADDRESS,
    DEFAULT_FRAME_HEIGHT,
    DEFAULT_FRAME_WIDTH,
    DEFAULT_PORT,
    handshake_timeout_for_port,
    timeout_for_port,
)

Vec3 = Tuple[float, float, float]
# (x, y, z, w)
Quat = Tuple[float, float, float, float]

IDENTITY_QUAT: Quat = (0.0, 0.0, 0.0, 1.0)
ZERO_VEC: Vec3 = (0.0, 0.0, 0.0)


class SBBaseModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class TimeOptions(SBBaseModel):
    """Timing negotiated once at handshake; read-only for the rest of the session."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    time_scale: int = Field(..., ge=1, alias="timeScale")
    sample_frequency: int = Field(..., ge=1, alias="sampleFrequency")
    timestep: float = Field(..., gt=0, allow_inf_nan=False)
    # None means "derive the fixed delta from timestep".
    fixed_delta_time: Optional[float] = Field(None, alias="fixedDeltaTime")

    @field_validator("fixed_delta_time", mode="before")
    @classmethod
    def _unset_when_not_positive(cls, v: Any) -> Optional[float]:
        if v is None:
            return None
        v = float(v)
        if not math.isfinite(v) or v <= 0.0:
            return None
        return v

    @property
    def effective_delta_time(self) -> float:
        return self.fixed_delta_time if self.fixed_delta_time is not None else self.timestep

    @property
    def target_frame_rate(self) -> int:
        return self.sample_frequency * self.time_scale

    @property
    def maximum_delta_time(self) -> float:
        return 1.0 / float(self.target_frame_rate)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


@dataclass(frozen=True)
class SimulatedUserState:
    """One state request from the driver. Replaced wholesale on every receive."""

    next_timestep: float
    headset_position: Vec3 = ZERO_VEC
    headset_rotation: Quat = IDENTITY_QUAT
    left_controller_position: Vec3 = ZERO_VEC
    left_controller_rotation: Quat = IDENTITY_QUAT
    right_controller_position: Vec3 = ZERO_VEC
    right_controller_rotation: Quat = IDENTITY_QUAT
    reset: bool = False
    quit_application: bool = False
    is_finished: bool = False


@dataclass(frozen=True)
class Observation:
    is_finished: bool
    reward: float
    frame: bytes
    time_feature: float
    log_dict: Dict[str, Any] = field(default_factory=dict)


class BridgeConfig(SBBaseModel):
    port: int = Field(DEFAULT_PORT, ge=0, le=65535)
    bind_address: str = DEFAULT_BIND_ADDRESS
    simulated: bool = False
    override_headset_orientation: bool = False
    headset_orientation: Quat = IDENTITY_QUAT
    env_name: str = "idle"
    # Interactive sessions halt the tick loop on fatal errors instead of exiting.
    interactive: bool = False
    step_timeout_s: Optional[float] = Field(None, gt=0)
    handshake_timeout_s: Optional[float] = Field(None, gt=0)
    frame_width: int = Field(DEFAULT_FRAME_WIDTH, ge=1)
    frame_height: int = Field(DEFAULT_FRAME_HEIGHT, ge=1)
    max_ticks: Optional[int] = Field(None, ge=1)
    log_level: str = "INFO"

    @property
    def effective_step_timeout_s(self) -> float:
        if self.step_timeout_s is not None:
            return float(self.step_timeout_s)
        return timeout_for_port(self.port)

    @property
    def effective_handshake_timeout_s(self) -> float:
        if self.handshake_timeout_s is not None:
            return float(self.handshake_timeout_s)
        return handshake_timeout_for_port(self.port)

    @classmethod
    def from_env(cls) -> "BridgeConfig":
        """Build a config from `SIMBRIDGE_*` environment variables (unset keys keep defaults)."""

        def _s(key: str) -> Optional[str]:
            raw = str(os.environ.get(key, "") or "").strip()
            return raw or None

        def _b(key: str) -> Optional[bool]:
            raw = _s(key)
            if raw is None:
                return None
            return raw.lower() in ("1", "true", "yes", "on")

        values: Dict[str, Any] = {
            "port": _s("SIMBRIDGE_PORT"),
            "bind_address": _s("SIMBRIDGE_BIND_ADDRESS"),
            "simulated": _b("SIMBRIDGE_SIMULATED"),
            "override_headset_orientation": _b("SIMBRIDGE_OVERRIDE_HEADSET_ORIENTATION"),
            "env_name": _s("SIMBRIDGE_ENV"),
            "interactive": _b("SIMBRIDGE_INTERACTIVE"),
            "step_timeout_s": _s("SIMBRIDGE_STEP_TIMEOUT_S"),
            "handshake_timeout_s": _s("SIMBRIDGE_HANDSHAKE_TIMEOUT_S"),
            "log_level": _s("SIMBRIDGE_LOG_LEVEL"),
        }
        orientation = _s("SIMBRIDGE_HEADSET_ORIENTATION")
        if orientation:
            values["headset_orientation"] = tuple(p.strip() for p in orientation.split(","))
        return cls(**{k: v for k, v in values.items() if v is not None})


__all__ = [
    "BridgeConfig",
    "IDENTITY_QUAT",
    "Observation",
    "Quat",
    "SimulatedUserState",
    "TimeOptions",
    "Vec3",
]
