"""Per-game capability set for reward, termination and reset.

Each game supplies one `GameEnvironment` subclass. The bridge only talks to
the capability set; the game decides where rewards come from and when an
episode ends.

Lifecycle:
    UNINITIALIZED --start()--> INITIALISED --update()--> RUNNING
    RUNNING --update() [finished]--> FINISHED --reset()--> RUNNING
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


class LifecyclePhase(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALISED = "initialised"
    RUNNING = "running"
    FINISHED = "finished"


@dataclass
class EnvironmentSession:
    """Per-episode scalars. Created once; `reset()` mutates in place."""

    reward: float = 0.0
    finished: bool = False
    log_dict: Dict[str, Any] = field(default_factory=dict)
    phase: LifecyclePhase = LifecyclePhase.UNINITIALIZED

    def reset(self, initial_log: Optional[Mapping[str, Any]] = None) -> None:
        self.reward = 0.0
        self.finished = False
        self.log_dict.clear()
        self.log_dict.update(initial_log or {})


def time_feature(elapsed_s: float, episode_length_s: float) -> float:
    """Map elapsed episode time onto [-1, 1] (start of episode is -1)."""
    if episode_length_s <= 0:
        return 1.0
    frac = max(0.0, min(1.0, float(elapsed_s) / float(episode_length_s)))
    return 2.0 * frac - 1.0


class GameEnvironment(abc.ABC):
    """Capability set one game variant implements.

    `clock` returns the host's current time in seconds; variants use it for
    episode timing instead of reaching into host globals.
    """

    name = "base"
    uses_hand_anchor = False

    def __init__(
        self,
        *,
        clock: Callable[[], float],
        session: Optional[EnvironmentSession] = None,
        logging_enabled: bool = False,
    ) -> None:
        self.clock = clock
        self.session = session if session is not None else EnvironmentSession()
        self.logging_enabled = bool(logging_enabled)

    # One-time setup, before the first tick.
    @abc.abstractmethod
    def initialise_game(self) -> None: ...

    @abc.abstractmethod
    def initialise_reward(self) -> None: ...

    # Every tick.
    @abc.abstractmethod
    def calculate_reward(self) -> None: ...

    @abc.abstractmethod
    def update_is_finished(self) -> None: ...

    @abc.abstractmethod
    def get_time_feature(self) -> float:
        """Elapsed episode time normalized to [-1, 1]."""

    @abc.abstractmethod
    def reset_game(self) -> None:
        """Variant-specific part of `reset()`; the session is already cleared."""

    def initial_log_dict(self) -> Dict[str, Any]:
        return {}

    def get_log_dict(self) -> Dict[str, Any]:
        return self.session.log_dict

    @property
    def reward(self) -> float:
        return self.session.reward

    @property
    def is_finished(self) -> bool:
        return self.session.finished

    @property
    def phase(self) -> LifecyclePhase:
        return self.session.phase

    def start(self) -> None:
        if self.session.phase is not LifecyclePhase.UNINITIALIZED:
            raise RuntimeError(f"{self.name}: start() called twice")
        self.session.reward = 0.0
        self.initialise_game()
        self.initialise_reward()
        self.session.log_dict.clear()
        self.session.log_dict.update(self.initial_log_dict())
        self.session.phase = LifecyclePhase.INITIALISED
        logger.info("%s: environment initialised (logging=%s)", self.name, self.logging_enabled)

    def update(self) -> None:
        if self.session.phase is LifecyclePhase.UNINITIALIZED:
            raise RuntimeError(f"{self.name}: update() before start()")
        self.calculate_reward()
        self.update_is_finished()
        self.session.phase = LifecyclePhase.FINISHED if self.session.finished else LifecyclePhase.RUNNING

    def reset(self) -> None:
        if self.session.phase is LifecyclePhase.UNINITIALIZED:
            raise RuntimeError(f"{self.name}: reset() before start()")
        self.session.reset(self.initial_log_dict())
        self.reset_game()
        self.session.phase = LifecyclePhase.RUNNING
        logger.debug("%s: episode reset", self.name)


__all__ = ["EnvironmentSession", "GameEnvironment", "LifecyclePhase"]
