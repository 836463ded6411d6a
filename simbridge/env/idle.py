from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from .lifecycle import EnvironmentSession, GameEnvironment, time_feature


class IdleEnvironment(GameEnvironment):
    """No task: zero reward, never ends on its own. The driver decides when episodes end."""

    name = "idle"

    def __init__(
        self,
        *,
        clock: Callable[[], float],
        session: Optional[EnvironmentSession] = None,
        logging_enabled: bool = False,
        episode_length_s: float = 60.0,
    ) -> None:
        super().__init__(clock=clock, session=session, logging_enabled=logging_enabled)
        self.episode_length_s = float(episode_length_s)
        self.episode_start = 0.0

    def initialise_game(self) -> None:
        self.episode_start = self.clock()

    def initialise_reward(self) -> None:
        self.session.reward = 0.0

    def calculate_reward(self) -> None:
        self.session.reward = 0.0

    def update_is_finished(self) -> None:
        self.session.finished = False

    def get_time_feature(self) -> float:
        return time_feature(self.clock() - self.episode_start, self.episode_length_s)

    def initial_log_dict(self) -> Dict[str, Any]:
        return {"episode_time": 0.0}

    def calculate_log(self) -> None:
        self.session.log_dict["episode_time"] = self.clock() - self.episode_start

    def update(self) -> None:
        super().update()
        self.calculate_log()

    def reset_game(self) -> None:
        self.episode_start = self.clock()
