"""Per-game reward/termination/reset capability sets."""

from .factory import available_envs, make_env
from .lifecycle import EnvironmentSession, GameEnvironment, LifecyclePhase

__all__ = [
    "EnvironmentSession",
    "GameEnvironment",
    "LifecyclePhase",
    "available_envs",
    "make_env",
]
