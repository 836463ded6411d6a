from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

import pytest

from simbridge.common.schemas import SimulatedUserState, TimeOptions
from simbridge.worker.anchors import StateApplier, Transform
from simbridge.worker.gate import TimestepGate
from simbridge.worker.host import HeadlessHost, HostTiming
from simbridge.worker.sync_loop import SyncLoop
from tests.fixtures.fake_bridge import FakeChannel, ManualClock, ScriptedEnv, StaticCapture


@pytest.fixture
def time_options() -> TimeOptions:
    return TimeOptions(timeScale=1, sampleFrequency=20, timestep=0.01)


@pytest.fixture
def make_state() -> Callable[..., SimulatedUserState]:
    def _make(next_timestep: float = 0.0, **overrides: Any) -> SimulatedUserState:
        return SimulatedUserState(next_timestep=next_timestep, **overrides)

    return _make


@dataclass
class LoopRig:
    loop: SyncLoop
    channel: FakeChannel
    host: HeadlessHost
    env: ScriptedEnv
    capture: StaticCapture
    camera: Transform
    left_hand: Transform
    right_hand: Transform


@pytest.fixture
def loop_rig(time_options: TimeOptions) -> Callable[..., LoopRig]:
    def _build(
        states: Iterable[Any] = (),
        *,
        gate: Optional[TimestepGate] = None,
        interactive: bool = False,
        fail_send: bool = False,
        capture: Optional[Any] = None,
    ) -> LoopRig:
        host = HeadlessHost(interactive=interactive)
        host.configure(HostTiming.from_time_options(time_options))
        channel = FakeChannel(states, fail_send=fail_send)
        env = ScriptedEnv(clock=ManualClock())
        env.start()
        camera, left_hand, right_hand = Transform(), Transform(), Transform()
        applier = StateApplier(camera=camera, left_hand=left_hand, right_hand=right_hand, env=env, host=host)
        cap = capture if capture is not None else StaticCapture()
        loop = SyncLoop(
            channel=channel,
            applier=applier,
            env=env,
            capture=cap,
            host=host,
            time_options=time_options,
            gate=gate,
        )
        return LoopRig(loop, channel, host, env, cap, camera, left_hand, right_hand)

    return _build
