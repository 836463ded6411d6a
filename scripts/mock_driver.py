#!/usr/bin/env python3
"""
Drive a running SimBridge host with scripted hand motion.

Sends the handshake, then one state request per physics step with the right
hand sweeping a circle in front of the headset. Resets every `--episode-steps`
steps and sends a quit request at the end.

Example:
  python -m simbridge.worker.main --simulated --env reach --port 5556 &
  python scripts/mock_driver.py --url tcp://127.0.0.1:5556 --steps 300
"""

from __future__ import annotations

import argparse
import logging
import math
import sys
from pathlib import Path

import numpy as np

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from simbridge.bridge.driver_client import DriverClient  # noqa: E402
from simbridge.common.errors import BridgeError  # noqa: E402
from simbridge.common.schemas import SimulatedUserState, TimeOptions  # noqa: E402

logger = logging.getLogger("mock_driver")


def _hand_position(step: int, sample_frequency: int) -> tuple:
    phase = 2.0 * math.pi * step / max(1, sample_frequency * 2)
    offset = 0.15 * np.array([math.cos(phase), math.sin(phase), 0.0])
    return tuple(float(v) for v in np.array([0.0, 1.2, 0.5]) + offset)


def main() -> int:
    ap = argparse.ArgumentParser(description="Scripted external driver for a SimBridge host")
    ap.add_argument("--url", default="tcp://127.0.0.1:5555")
    ap.add_argument("--steps", type=int, default=200)
    ap.add_argument("--episode-steps", type=int, default=100)
    ap.add_argument("--time-scale", type=int, default=1)
    ap.add_argument("--sample-frequency", type=int, default=20)
    ap.add_argument("--timestep", type=float, default=0.01)
    ap.add_argument("--timeout", type=float, default=10.0)
    args = ap.parse_args()

    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")

    options = TimeOptions(
        time_scale=args.time_scale,
        sample_frequency=args.sample_frequency,
        timestep=args.timestep,
    )
    client = DriverClient(server_url=args.url, timeout_s=args.timeout)
    try:
        client.handshake(options)
        step_dt = 1.0 / float(args.sample_frequency)
        total_reward = 0.0
        for step in range(args.steps + 1):
            last = step == args.steps
            state = SimulatedUserState(
                next_timestep=step * step_dt,
                headset_position=(0.0, 1.6, 0.0),
                right_controller_position=_hand_position(step, args.sample_frequency),
                left_controller_position=(-0.2, 1.0, 0.2),
                reset=(step > 0 and step % args.episode_steps == 0),
                quit_application=last,
            )
            obs = client.step(state)
            total_reward += obs.reward
            if step % 20 == 0 or obs.is_finished:
                logger.info(
                    "step=%d reward=%.4f time=%.3f finished=%s frame=%dB log=%s",
                    step,
                    obs.reward,
                    obs.time_feature,
                    obs.is_finished,
                    len(obs.frame),
                    obs.log_dict,
                )
        logger.info("done: %d steps, total reward %.3f", args.steps, total_reward)
        return 0
    except BridgeError as e:
        logger.error("driver failed (%s): %s", type(e).__name__, e)
        return e.exit_status
    finally:
        client.close()


if __name__ == "__main__":
    raise SystemExit(main())
