from __future__ import annotations

import pytest
from pydantic import ValidationError

from simbridge.common.protocol import (
    DEBUG_HANDSHAKE_TIMEOUT_S,
    DEBUG_STEP_TIMEOUT_S,
    HANDSHAKE_TIMEOUT_S,
    STEP_TIMEOUT_S,
)
from simbridge.common.schemas import BridgeConfig, TimeOptions


def test_handshake_derivation_without_fixed_delta():
    opts = TimeOptions.model_validate({"timeScale": 2, "sampleFrequency": 30, "timestep": 0.01})
    assert opts.fixed_delta_time is None
    assert opts.effective_delta_time == 0.01
    assert opts.target_frame_rate == 60
    assert opts.maximum_delta_time == pytest.approx(1.0 / 60.0)


def test_zero_fixed_delta_means_unset():
    opts = TimeOptions.model_validate(
        {"timeScale": 1, "sampleFrequency": 20, "timestep": 0.02, "fixedDeltaTime": 0}
    )
    assert opts.fixed_delta_time is None
    assert opts.effective_delta_time == 0.02


def test_fixed_delta_takes_precedence_over_timestep():
    opts = TimeOptions.model_validate(
        {"timeScale": 1, "sampleFrequency": 20, "timestep": 0.02, "fixedDeltaTime": 0.005}
    )
    assert opts.effective_delta_time == 0.005


def test_time_options_are_immutable():
    opts = TimeOptions(time_scale=1, sample_frequency=20, timestep=0.01)
    with pytest.raises(ValidationError):
        opts.time_scale = 4  # type: ignore[misc]


@pytest.mark.parametrize(
    "raw",
    [
        {"timeScale": 0, "sampleFrequency": 20, "timestep": 0.01},
        {"timeScale": 1, "sampleFrequency": 0, "timestep": 0.01},
        {"timeScale": 1, "sampleFrequency": 20, "timestep": 0.0},
        {"timeScale": 1, "sampleFrequency": 20},
    ],
)
def test_invalid_time_options_rejected(raw):
    with pytest.raises(ValidationError):
        TimeOptions.model_validate(raw)


def test_wire_keys_are_camel_case():
    wire = TimeOptions(time_scale=2, sample_frequency=30, timestep=0.01).to_wire()
    assert wire == {"timeScale": 2, "sampleFrequency": 30, "timestep": 0.01, "fixedDeltaTime": None}


def test_debug_port_gets_long_timeouts():
    cfg = BridgeConfig(port=5555)
    assert cfg.effective_step_timeout_s == DEBUG_STEP_TIMEOUT_S
    assert cfg.effective_handshake_timeout_s == DEBUG_HANDSHAKE_TIMEOUT_S

    other = BridgeConfig(port=5600)
    assert other.effective_step_timeout_s == STEP_TIMEOUT_S
    assert other.effective_handshake_timeout_s == HANDSHAKE_TIMEOUT_S
    assert STEP_TIMEOUT_S < DEBUG_STEP_TIMEOUT_S


def test_explicit_timeouts_override_port_defaults():
    cfg = BridgeConfig(port=5555, step_timeout_s=2.0, handshake_timeout_s=3.0)
    assert cfg.effective_step_timeout_s == 2.0
    assert cfg.effective_handshake_timeout_s == 3.0


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("SIMBRIDGE_PORT", "6001")
    monkeypatch.setenv("SIMBRIDGE_SIMULATED", "true")
    monkeypatch.setenv("SIMBRIDGE_OVERRIDE_HEADSET_ORIENTATION", "1")
    monkeypatch.setenv("SIMBRIDGE_HEADSET_ORIENTATION", "0,0.7071,0,0.7071")
    monkeypatch.setenv("SIMBRIDGE_ENV", "reach")
    cfg = BridgeConfig.from_env()
    assert cfg.port == 6001
    assert cfg.simulated is True
    assert cfg.override_headset_orientation is True
    assert cfg.headset_orientation == (0.0, 0.7071, 0.0, 0.7071)
    assert cfg.env_name == "reach"
    assert cfg.interactive is False


def test_config_from_env_rejects_malformed_orientation(monkeypatch):
    monkeypatch.setenv("SIMBRIDGE_HEADSET_ORIENTATION", "0,0,x,1")
    with pytest.raises(ValidationError):
        BridgeConfig.from_env()


def test_config_rejects_short_orientation():
    with pytest.raises(ValidationError):
        BridgeConfig(headset_orientation=(0.0, 0.0, 1.0))
