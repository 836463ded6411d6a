"""SimBridge host entry point.

Binds the channel, waits for the driver's handshake, applies the negotiated
timing once, then runs the headless host tick loop until the driver asks to
quit or a fatal error ends the session.

Exit status: 0 on a clean quit, otherwise the error kind's status
(see `simbridge.common.protocol`).
"""

from __future__ import annotations

import argparse
import logging
import time
from typing import List, Optional

from pydantic import ValidationError

from simbridge.bridge.zmq_channel import ZmqChannel
from simbridge.common.errors import BridgeError, ProtocolError
from simbridge.common.protocol import EXIT_OK
from simbridge.common.schemas import BridgeConfig
from simbridge.env.factory import available_envs, make_env

from .anchors import StateApplier, Transform
from .capture import AnchorSketchRenderer, PngFrameCapture
from .host import HeadlessHost, HostTiming
from .sync_loop import SyncLoop

logger = logging.getLogger(__name__)


def build_parser(defaults: BridgeConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="SimBridge rendering host")
    parser.add_argument("--port", type=int, default=defaults.port, help="5555 is the debug port (long timeouts)")
    parser.add_argument("--bind-address", default=defaults.bind_address)
    parser.add_argument("--simulated", action="store_true", default=defaults.simulated)
    parser.add_argument("--env", dest="env_name", default=defaults.env_name, choices=available_envs())
    parser.add_argument(
        "--override-headset-orientation",
        action="store_true",
        default=defaults.override_headset_orientation,
    )
    parser.add_argument(
        "--headset-orientation",
        type=float,
        nargs=4,
        metavar=("X", "Y", "Z", "W"),
        default=list(defaults.headset_orientation),
    )
    parser.add_argument("--interactive", action="store_true", default=defaults.interactive)
    parser.add_argument("--step-timeout", dest="step_timeout_s", type=float, default=defaults.step_timeout_s)
    parser.add_argument(
        "--handshake-timeout", dest="handshake_timeout_s", type=float, default=defaults.handshake_timeout_s
    )
    parser.add_argument("--frame-width", type=int, default=defaults.frame_width)
    parser.add_argument("--frame-height", type=int, default=defaults.frame_height)
    parser.add_argument("--max-ticks", type=int, default=defaults.max_ticks)
    parser.add_argument("--log-level", default=defaults.log_level)
    return parser


def parse_config(argv: Optional[List[str]] = None) -> BridgeConfig:
    """Environment (`SIMBRIDGE_*`) first, then CLI flags on top."""
    defaults = BridgeConfig.from_env()
    args = build_parser(defaults).parse_args(argv)
    values = vars(args)
    values["headset_orientation"] = tuple(values["headset_orientation"])
    return BridgeConfig(**values)


def _wait_for_operator(reason: str) -> None:
    logger.warning("Host halted (%s); state kept for inspection, Ctrl+C to exit", reason)
    try:
        while True:
            time.sleep(1.0)
    except KeyboardInterrupt:
        pass


def run(config: BridgeConfig) -> int:
    if not config.simulated:
        logger.info("Simulated mode disabled; bridge not started")
        return EXIT_OK

    host = HeadlessHost(interactive=config.interactive)
    try:
        channel = ZmqChannel.open(
            config.port,
            config.effective_step_timeout_s,
            handshake_timeout_s=config.effective_handshake_timeout_s,
            bind_address=config.bind_address,
        )
    except BridgeError as e:
        logger.error("Channel open failed (%s): %s", type(e).__name__, e)
        if config.interactive:
            _wait_for_operator(str(e))
        return e.exit_status

    handshake = channel.wait_for_handshake()
    if not handshake.ok or handshake.value is None:
        error = handshake.error or ProtocolError("handshake returned no time options")
        logger.error("Handshake failed (%s): %s", type(error).__name__, error)
        channel.close()
        if config.interactive:
            _wait_for_operator(str(error))
        return error.exit_status
    time_options = handshake.value
    host.configure(HostTiming.from_time_options(time_options))

    camera, left_hand, right_hand = Transform(), Transform(), Transform()
    env = make_env(config.env_name, clock=host.clock, hand=right_hand)
    env.start()

    renderer = AnchorSketchRenderer(
        camera=camera,
        left_hand=left_hand,
        right_hand=right_hand,
        width=config.frame_width,
        height=config.frame_height,
    )
    applier = StateApplier(
        camera=camera,
        left_hand=left_hand,
        right_hand=right_hand,
        env=env,
        host=host,
        override_headset_orientation=config.override_headset_orientation,
        headset_orientation=config.headset_orientation,
    )
    loop = SyncLoop(
        channel=channel,
        applier=applier,
        env=env,
        capture=PngFrameCapture(renderer),
        host=host,
        time_options=time_options,
    )

    status = host.run(loop, max_ticks=config.max_ticks)
    if host.halted and config.interactive:
        _wait_for_operator(host.halt_reason or "halted")
    return status


def main(argv: Optional[List[str]] = None) -> int:
    try:
        config = parse_config(argv)
    except ValidationError as e:
        print(f"[simbridge] invalid configuration: {e}")
        return 2
    logging.basicConfig(
        level=getattr(logging, str(config.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return run(config)
    except BridgeError as e:
        logger.error("Bridge failed (%s): %s", type(e).__name__, e)
        return e.exit_status


if __name__ == "__main__":
    raise SystemExit(main())
