"""Reach task: touch targets that appear in front of the user with the right hand.

Reward is dense (negative hand-to-target distance, recomputed each tick) so
the value sent on an advanced tick never depends on how many silent ticks ran
before it. Touching a target counts a hit and spawns the next one.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Tuple

import numpy as np

from .lifecycle import EnvironmentSession, GameEnvironment, time_feature

logger = logging.getLogger(__name__)


class ReachEnvironment(GameEnvironment):
    name = "reach"
    uses_hand_anchor = True

    def __init__(
        self,
        *,
        clock: Callable[[], float],
        hand: Any,
        session: Optional[EnvironmentSession] = None,
        logging_enabled: bool = False,
        episode_length_s: float = 10.0,
        target_radius: float = 0.05,
        target_center: Tuple[float, float, float] = (0.0, 1.2, 0.5),
        target_spread: Tuple[float, float, float] = (0.2, 0.2, 0.1),
        seed: int = 0,
    ) -> None:
        super().__init__(clock=clock, session=session, logging_enabled=logging_enabled)
        # Anything with a `.position` (x, y, z); normally the right hand proxy.
        self.hand = hand
        self.episode_length_s = float(episode_length_s)
        self.target_radius = float(target_radius)
        self.target_center = np.asarray(target_center, dtype=np.float64)
        self.target_spread = np.asarray(target_spread, dtype=np.float64)
        self.seed = int(seed)

        self._rng = np.random.default_rng(self.seed)
        self.target = self.target_center.copy()
        self.targets_hit = 0
        self.episode_start = 0.0

    def _spawn_target(self) -> None:
        offset = self._rng.uniform(-1.0, 1.0, size=3) * self.target_spread
        self.target = self.target_center + offset

    def _distance(self) -> float:
        hand = np.asarray(self.hand.position, dtype=np.float64)
        return float(np.linalg.norm(hand - self.target))

    def initialise_game(self) -> None:
        self.episode_start = self.clock()
        self.targets_hit = 0
        self._spawn_target()

    def initialise_reward(self) -> None:
        self.session.reward = 0.0

    def calculate_reward(self) -> None:
        dist = self._distance()
        if dist <= self.target_radius:
            self.targets_hit += 1
            self.session.log_dict["targets_hit"] = self.targets_hit
            if self.logging_enabled:
                logger.info("reach: target %d hit at t=%.3f", self.targets_hit, self.clock() - self.episode_start)
            self._spawn_target()
            dist = self._distance()
        self.session.reward = -dist
        self.session.log_dict["distance"] = dist

    def update_is_finished(self) -> None:
        self.session.finished = (self.clock() - self.episode_start) >= self.episode_length_s

    def get_time_feature(self) -> float:
        return time_feature(self.clock() - self.episode_start, self.episode_length_s)

    def initial_log_dict(self) -> Dict[str, Any]:
        return {"targets_hit": 0}

    def reset_game(self) -> None:
        self.episode_start = self.clock()
        self.targets_hit = 0
        self._spawn_target()
