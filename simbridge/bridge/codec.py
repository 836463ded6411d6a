"""Wire codec for the host <-> driver protocol.

Handshake (driver -> host, first message): UTF-8 JSON object
  {"timeScale": int, "sampleFrequency": int, "timestep": float, "fixedDeltaTime": float|null}
  host acknowledges with {"status": "ready"}.

State request (driver -> host, per step), little-endian:
  b"SUST"
  float64 nextTimestep
  float64[3] headsetPosition,         float64[4] headsetRotation (x, y, z, w)
  float64[3] leftControllerPosition,  float64[4] leftControllerRotation
  float64[3] rightControllerPosition, float64[4] rightControllerRotation
  bool reset, bool quitApplication, bool isFinished

Observation reply (host -> driver, per advanced step), little-endian:
  b"SUOB"
  bool isFinished
  float32 reward
  uint32 frameLength, frameLength bytes (PNG)
  float32 timeFeature
  uint32 logLength, logLength bytes of UTF-8 JSON object

Log values must be JSON-native to come back unchanged. Tuples, sets and numpy
arrays are written as JSON lists and decode as lists; numpy scalars decode as
plain Python numbers.
"""

from __future__ import annotations

import json
import math
import struct
from typing import Any, Mapping

import numpy as np
from pydantic import ValidationError

from simbridge.common.errors import CaptureError, ProtocolError
from simbridge.common.protocol import HANDSHAKE_READY, OBSERVATION_MAGIC, STATE_MAGIC
from simbridge.common.schemas import Observation, SimulatedUserState, TimeOptions

_STATE_STRUCT = struct.Struct("<4sd3d4d3d4d3d4d???")
_OBS_HEAD_STRUCT = struct.Struct("<4s?fI")
_OBS_TAIL_STRUCT = struct.Struct("<fI")

MAX_FRAME_BYTES = 64 * 1024 * 1024
MAX_LOG_BYTES = 4 * 1024 * 1024


def encode_handshake(options: TimeOptions) -> bytes:
    return json.dumps(options.to_wire()).encode("utf-8")


def decode_handshake(buf: bytes) -> TimeOptions:
    try:
        raw = json.loads(bytes(buf).decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise ProtocolError(f"handshake is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ProtocolError("handshake must be a JSON object")
    try:
        return TimeOptions.model_validate(raw)
    except ValidationError as e:
        raise ProtocolError(f"invalid handshake time options: {e}") from e


def encode_ready() -> bytes:
    return json.dumps(HANDSHAKE_READY).encode("utf-8")


def decode_ready(buf: bytes) -> None:
    try:
        raw = json.loads(bytes(buf).decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise ProtocolError(f"handshake acknowledgement is not valid JSON: {e}") from e
    if raw != HANDSHAKE_READY:
        raise ProtocolError(f"unexpected handshake acknowledgement: {raw!r}")


def encode_state(state: SimulatedUserState) -> bytes:
    return _STATE_STRUCT.pack(
        STATE_MAGIC,
        float(state.next_timestep),
        *state.headset_position,
        *state.headset_rotation,
        *state.left_controller_position,
        *state.left_controller_rotation,
        *state.right_controller_position,
        *state.right_controller_rotation,
        bool(state.reset),
        bool(state.quit_application),
        bool(state.is_finished),
    )


def decode_state(buf: bytes) -> SimulatedUserState:
    if len(buf) != _STATE_STRUCT.size:
        raise ProtocolError(f"state request has {len(buf)} bytes, expected {_STATE_STRUCT.size}")
    fields = _STATE_STRUCT.unpack(buf)
    if fields[0] != STATE_MAGIC:
        raise ProtocolError(f"bad state request magic {fields[0]!r}")
    floats = fields[1:23]
    if not all(math.isfinite(v) for v in floats):
        raise ProtocolError("state request contains non-finite values")
    return SimulatedUserState(
        next_timestep=floats[0],
        headset_position=tuple(floats[1:4]),
        headset_rotation=tuple(floats[4:8]),
        left_controller_position=tuple(floats[8:11]),
        left_controller_rotation=tuple(floats[11:15]),
        right_controller_position=tuple(floats[15:18]),
        right_controller_rotation=tuple(floats[18:22]),
        reset=bool(fields[23]),
        quit_application=bool(fields[24]),
        is_finished=bool(fields[25]),
    )


def _json_default(obj: Any) -> Any:
    # numpy scalars/arrays show up in game log dicts.
    if isinstance(obj, np.generic):
        return obj.item()
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, (tuple, set, frozenset)):
        return list(obj)
    raise TypeError(f"log value of type {type(obj).__name__} is not serializable")


def _encode_log_dict(log_dict: Mapping[str, Any]) -> bytes:
    for key in log_dict:
        if not isinstance(key, str):
            raise ProtocolError(f"log dict keys must be strings, got {key!r}")
    try:
        text = json.dumps(
            dict(log_dict),
            default=_json_default,
            allow_nan=False,
            ensure_ascii=False,
            separators=(",", ":"),
        )
    except (TypeError, ValueError) as e:
        raise ProtocolError(f"log dict is not serializable: {e}") from e
    return text.encode("utf-8")


def encode_observation(obs: Observation) -> bytes:
    """Encode one complete observation. Nothing is written until every field validated."""
    frame = bytes(obs.frame)
    if not frame:
        raise CaptureError("observation frame is empty")
    if len(frame) > MAX_FRAME_BYTES:
        raise CaptureError(f"observation frame too large ({len(frame)} bytes)")
    if not math.isfinite(obs.reward):
        raise ProtocolError(f"reward must be finite, got {obs.reward!r}")
    if not math.isfinite(obs.time_feature):
        raise ProtocolError(f"time feature must be finite, got {obs.time_feature!r}")
    log_bytes = _encode_log_dict(obs.log_dict)
    try:
        head = _OBS_HEAD_STRUCT.pack(OBSERVATION_MAGIC, bool(obs.is_finished), float(obs.reward), len(frame))
        tail = _OBS_TAIL_STRUCT.pack(float(obs.time_feature), len(log_bytes))
    except (OverflowError, struct.error) as e:
        raise ProtocolError(f"observation scalar out of float32 range: {e}") from e
    return b"".join((head, frame, tail, log_bytes))


def decode_observation(buf: bytes) -> Observation:
    buf = bytes(buf)
    off = 0

    def need(n: int) -> None:
        if off + n > len(buf):
            raise ProtocolError(f"observation truncated at offset {off} (need {n} bytes, have {len(buf) - off})")

    need(_OBS_HEAD_STRUCT.size)
    magic, is_finished, reward, frame_len = _OBS_HEAD_STRUCT.unpack_from(buf, off)
    if magic != OBSERVATION_MAGIC:
        raise ProtocolError(f"bad observation magic {magic!r}")
    off += _OBS_HEAD_STRUCT.size
    need(frame_len)
    frame = buf[off : off + frame_len]
    off += frame_len
    need(_OBS_TAIL_STRUCT.size)
    time_feature, log_len = _OBS_TAIL_STRUCT.unpack_from(buf, off)
    off += _OBS_TAIL_STRUCT.size
    if log_len > MAX_LOG_BYTES:
        raise ProtocolError(f"observation log dict too large ({log_len} bytes)")
    need(log_len)
    try:
        log_dict = json.loads(buf[off : off + log_len].decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise ProtocolError(f"observation log dict is not valid JSON: {e}") from e
    off += log_len
    if not isinstance(log_dict, dict):
        raise ProtocolError("observation log dict must be a JSON object")
    if off != len(buf):
        raise ProtocolError(f"{len(buf) - off} trailing bytes after observation")
    return Observation(
        is_finished=bool(is_finished),
        reward=float(reward),
        frame=frame,
        time_feature=float(time_feature),
        log_dict=log_dict,
    )


class ObservationEncoder:
    """Packages frame + scalars + log map into one outbound message."""

    def __init__(self) -> None:
        self.encoded = 0

    def encode(
        self,
        *,
        is_finished: bool,
        reward: float,
        frame: bytes,
        time_feature: float,
        log_dict: Mapping[str, Any],
    ) -> bytes:
        obs = Observation(
            is_finished=bool(is_finished),
            reward=float(reward),
            frame=bytes(frame),
            time_feature=float(time_feature),
            log_dict=dict(log_dict or {}),
        )
        payload = encode_observation(obs)
        self.encoded += 1
        return payload


__all__ = [
    "ObservationEncoder",
    "decode_handshake",
    "decode_observation",
    "decode_ready",
    "decode_state",
    "encode_handshake",
    "encode_observation",
    "encode_ready",
    "encode_state",
]
