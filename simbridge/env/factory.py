from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Type

from .idle import IdleEnvironment
from .lifecycle import GameEnvironment
from .reach import ReachEnvironment

_REGISTRY: Dict[str, Type[GameEnvironment]] = {
    IdleEnvironment.name: IdleEnvironment,
    ReachEnvironment.name: ReachEnvironment,
}


def available_envs() -> List[str]:
    return sorted(_REGISTRY)


def make_env(
    name: str,
    *,
    clock: Callable[[], float],
    hand: Optional[Any] = None,
    **kwargs: Any,
) -> GameEnvironment:
    """Create a game environment by registry name; extra kwargs go to the variant."""
    key = str(name or "").strip().lower()
    if key not in _REGISTRY:
        raise ValueError(f"unknown environment {name!r}; available: {', '.join(available_envs())}")
    cls = _REGISTRY[key]
    if cls.uses_hand_anchor:
        if hand is None:
            raise ValueError(f"environment {key!r} needs a hand anchor")
        kwargs["hand"] = hand
    return cls(clock=clock, **kwargs)
