from __future__ import annotations

import logging

import pytest

from simbridge.bridge.codec import decode_observation
from simbridge.common.errors import CaptureError, ProtocolError, StepTimeoutError
from simbridge.common.protocol import EXIT_CAPTURE_ERROR, EXIT_OK, EXIT_PROTOCOL_ERROR, EXIT_SEND_ERROR, EXIT_STEP_TIMEOUT
from simbridge.worker.capture import AnchorSketchRenderer, PngFrameCapture
from simbridge.worker.gate import GateDecision
from tests.fixtures.fake_bridge import FAKE_PNG, ScriptedGate

A, S = GateDecision.ADVANCE, GateDecision.SKIP


def test_silent_on_skip_ticks(loop_rig, make_state):
    rig = loop_rig(
        [make_state(0.0), make_state(0.1)],
        gate=ScriptedGate([S, A, S, S, A]),
    )
    for i in range(5):
        rig.loop.tick(float(i))
    assert len(rig.channel.sent) == 2
    assert rig.channel.receives == 2
    assert rig.capture.calls == 2
    assert rig.loop.observations_sent == 2
    assert rig.loop.encoder.encoded == 2
    # Game logic still runs on silent ticks.
    assert rig.env.updates == 5


def test_gate_uses_last_state_timestep(loop_rig, make_state):
    rig = loop_rig([make_state(0.5), make_state(1.0)])
    assert rig.loop.tick(0.0) is A
    assert rig.loop.tick(0.25) is S
    assert rig.loop.tick(0.5) is A
    assert rig.loop.tick(0.75) is S
    assert len(rig.channel.sent) == 2


@pytest.mark.parametrize(
    "local, remote, expected",
    [(False, True, True), (True, False, True), (False, False, False), (True, True, True)],
)
def test_finished_is_local_or_remote(loop_rig, make_state, local, remote, expected):
    rig = loop_rig([make_state(0.0, is_finished=remote)])
    rig.env.next_finished = local
    rig.loop.tick(0.0)
    obs = decode_observation(rig.channel.sent[0])
    assert obs.is_finished is expected


def test_observation_reflects_state_applied_this_tick(loop_rig, make_state):
    renders = []

    def _render():
        renders.append(rig.right_hand.position)
        return AnchorSketchRenderer(camera=rig.camera, left_hand=rig.left_hand, right_hand=rig.right_hand)()

    rig = loop_rig([make_state(0.0, right_controller_position=(0.3, 1.0, 0.2))])
    rig.loop.capture = PngFrameCapture(_render)
    rig.env.next_reward = 0.5

    rig.loop.tick(0.0)
    obs = decode_observation(rig.channel.sent[0])
    assert renders == [(0.3, 1.0, 0.2)]
    assert obs.frame.startswith(b"\x89PNG")
    assert obs.reward == 0.5
    assert obs.time_feature == 0.5
    assert obs.log_dict == {"hits": 0}


def test_game_logic_runs_before_capture(loop_rig, make_state):
    rig = loop_rig([make_state(0.0)])
    order = []
    rig.loop.capture.capture = lambda: order.append("capture") or FAKE_PNG
    rig.loop.tick(0.0, game_logic=lambda: order.append("logic"))
    assert order == ["logic", "capture"]


def test_reset_flag_resets_env_before_observation(loop_rig, make_state):
    rig = loop_rig([make_state(0.0), make_state(0.1, reset=True)])
    rig.env.next_reward = 2.0
    rig.env.next_finished = True
    rig.env.session.log_dict["hits"] = 4
    rig.loop.tick(0.0)
    first = decode_observation(rig.channel.sent[0])
    assert first.is_finished is True
    assert first.log_dict == {"hits": 4}

    rig.loop.tick(0.1)
    assert rig.env.resets == 1
    assert len(rig.channel.sent) == 2
    second = decode_observation(rig.channel.sent[1])
    assert second.is_finished is False
    assert second.log_dict == {"hits": 0}


def test_first_step_logs_session_timing(loop_rig, make_state, caplog):
    rig = loop_rig([make_state(0.0), make_state(0.1)])
    with caplog.at_level(logging.INFO, logger="simbridge.worker.sync_loop"):
        rig.loop.tick(0.0)
        rig.loop.tick(0.1)
    first_step = [r for r in caplog.records if "First step received" in r.getMessage()]
    assert len(first_step) == 1
    assert "sample_frequency=20" in first_step[0].getMessage()


def test_step_timeout_is_fatal(loop_rig, make_state):
    rig = loop_rig([make_state(0.0)])
    rig.loop.tick(0.0)
    rig.loop.tick(1.0)
    assert isinstance(rig.loop.fatal_error, StepTimeoutError)
    assert rig.channel.closed
    assert rig.host.running is False
    assert rig.host.exit_status == EXIT_STEP_TIMEOUT
    assert len(rig.channel.sent) == 1

    # No open-loop continuation once stopped.
    rig.loop.tick(2.0)
    assert rig.channel.receives == 2


def test_malformed_state_is_fatal(loop_rig):
    rig = loop_rig([ProtocolError("garbage")])
    rig.loop.tick(0.0)
    assert rig.host.exit_status == EXIT_PROTOCOL_ERROR
    assert rig.channel.sent == []


def test_timestep_going_backwards_is_protocol_error(loop_rig, make_state):
    rig = loop_rig([make_state(1.0), make_state(0.5)], gate=ScriptedGate([A, A]))
    rig.loop.tick(1.0)
    rig.loop.tick(1.0)
    assert isinstance(rig.loop.fatal_error, ProtocolError)
    assert len(rig.channel.sent) == 1


def test_send_failure_closes_channel_and_quits(loop_rig, make_state):
    rig = loop_rig([make_state(0.0)], fail_send=True)
    rig.loop.tick(0.0)
    assert rig.channel.closed
    assert rig.host.exit_status == EXIT_SEND_ERROR


def test_capture_failure_is_fatal(loop_rig, make_state):
    class BrokenCapture:
        def capture(self) -> bytes:
            raise CaptureError("no frame")

    rig = loop_rig([make_state(0.0)], capture=BrokenCapture())
    rig.loop.tick(0.0)
    assert rig.host.exit_status == EXIT_CAPTURE_ERROR
    assert rig.channel.sent == []


@pytest.mark.parametrize("interactive", [False, True])
def test_backend_os_error_becomes_capture_error(loop_rig, make_state, interactive):
    class DeviceLostCapture:
        def capture(self) -> bytes:
            raise OSError("device lost")

    rig = loop_rig([make_state(0.0)], capture=DeviceLostCapture(), interactive=interactive)
    rig.loop.tick(0.0)
    assert isinstance(rig.loop.fatal_error, CaptureError)
    assert "device lost" in str(rig.loop.fatal_error)
    assert rig.host.exit_status == EXIT_CAPTURE_ERROR
    assert rig.host.halted is interactive
    assert rig.channel.closed
    assert rig.channel.sent == []


def test_empty_frame_is_fatal(loop_rig, make_state):
    rig = loop_rig([make_state(0.0)])
    rig.capture.frame = b""
    rig.loop.tick(0.0)
    assert isinstance(rig.loop.fatal_error, CaptureError)
    assert rig.channel.sent == []


def test_interactive_fatal_halts_instead_of_quitting(loop_rig):
    rig = loop_rig([ProtocolError("late")], interactive=True)
    rig.loop.tick(0.0)
    assert rig.host.halted is True
    assert rig.host.running is False
    assert "late" in (rig.host.halt_reason or "")


def test_quit_still_answers_the_request(loop_rig, make_state):
    rig = loop_rig([make_state(0.0), make_state(0.1, quit_application=True)])
    status = rig.host.run(rig.loop, max_ticks=100)
    assert status == EXIT_OK
    assert rig.loop.observations_sent == 2
    assert rig.channel.closed
