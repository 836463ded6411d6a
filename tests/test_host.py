from __future__ import annotations

import pytest

from simbridge.common.protocol import EXIT_OK
from simbridge.common.schemas import TimeOptions
from simbridge.worker.host import HeadlessHost, HostTiming


def test_timing_from_handshake():
    timing = HostTiming.from_time_options(TimeOptions(time_scale=2, sample_frequency=30, timestep=0.01))
    assert timing.time_scale == 2
    assert timing.target_frame_rate == 60
    assert timing.fixed_delta_time == 0.01
    assert timing.maximum_delta_time == pytest.approx(1.0 / 60.0)
    assert timing.frame_delta_time == pytest.approx(1.0 / 60.0)


def test_timing_configured_once():
    host = HeadlessHost()
    timing = HostTiming.from_time_options(TimeOptions(time_scale=1, sample_frequency=20, timestep=0.01))
    host.configure(timing)
    with pytest.raises(RuntimeError):
        host.configure(timing)


def test_fixed_time_advances_in_whole_fixed_steps():
    host = HeadlessHost()
    host.configure(HostTiming.from_time_options(TimeOptions(time_scale=1, sample_frequency=40, timestep=0.01)))
    assert host.fixed_time == 0.0
    # 0.025 s per frame with 0.01 s fixed steps: 0.02, 0.05, 0.07, 0.10
    seen = []
    for _ in range(4):
        host.advance_frame()
        seen.append(host.fixed_time)
    assert seen == pytest.approx([0.02, 0.05, 0.07, 0.10])
    assert host.frame_count == 4
    assert all(b >= a for a, b in zip(seen, seen[1:]))


def test_advance_requires_timing():
    with pytest.raises(RuntimeError):
        HeadlessHost().advance_frame()


def test_quit_and_halt():
    host = HeadlessHost()
    host.quit(7)
    assert host.running is False
    assert host.exit_status == 7

    host = HeadlessHost(interactive=True)
    host.halt("inspect", 5)
    assert host.halted and host.halt_reason == "inspect" and host.exit_status == 5


def test_run_stops_at_max_ticks_and_closes(loop_rig, make_state):
    states = [make_state(0.05 * i) for i in range(100)]
    rig = loop_rig(states)
    status = rig.host.run(rig.loop, max_ticks=10)
    assert status == EXIT_OK
    assert rig.loop.ticks == 10
    assert rig.channel.closed
    assert rig.loop.observations_sent == len(rig.channel.sent) >= 1
