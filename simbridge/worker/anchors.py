"""Host anchors (camera viewpoint, hand proxies) and the inbound state applier."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from simbridge.common.protocol import EXIT_OK
from simbridge.common.schemas import IDENTITY_QUAT, Quat, SimulatedUserState, Vec3, ZERO_VEC
from simbridge.env.lifecycle import GameEnvironment

if TYPE_CHECKING:
    from .host import HostControl

logger = logging.getLogger(__name__)


@dataclass
class Transform:
    position: Vec3 = ZERO_VEC
    rotation: Quat = IDENTITY_QUAT

    def set_position_and_rotation(self, position: Vec3, rotation: Quat) -> None:
        self.position = tuple(float(v) for v in position)  # type: ignore[assignment]
        self.rotation = tuple(float(v) for v in rotation)  # type: ignore[assignment]


class StateApplier:
    """Writes driver poses onto the host anchors, then handles quit/reset.

    Poses are applied verbatim (no smoothing): the driver is the authoritative
    stepper. The optional headset override replaces only the camera rotation.
    """

    def __init__(
        self,
        *,
        camera: Transform,
        left_hand: Transform,
        right_hand: Transform,
        env: GameEnvironment,
        host: "HostControl",
        override_headset_orientation: bool = False,
        headset_orientation: Optional[Quat] = None,
    ) -> None:
        self.camera = camera
        self.left_hand = left_hand
        self.right_hand = right_hand
        self.env = env
        self.host = host
        self.override_headset_orientation = bool(override_headset_orientation)
        self.headset_orientation: Quat = tuple(headset_orientation or IDENTITY_QUAT)  # type: ignore[assignment]
        self.quit_requested = False

    def update_anchors(self, state: SimulatedUserState) -> None:
        self.camera.set_position_and_rotation(state.headset_position, state.headset_rotation)
        self.left_hand.set_position_and_rotation(state.left_controller_position, state.left_controller_rotation)
        self.right_hand.set_position_and_rotation(state.right_controller_position, state.right_controller_rotation)
        if self.override_headset_orientation:
            self.camera.rotation = self.headset_orientation

    def apply(self, state: SimulatedUserState) -> None:
        self.update_anchors(state)

        if state.quit_application:
            self.quit_requested = True
            if self.host.interactive:
                logger.info("Quit requested by driver; halting tick loop for inspection")
                self.host.halt("quit requested by driver")
            else:
                logger.info("Quit requested by driver")
                self.host.quit(EXIT_OK)
        elif state.reset:
            self.env.reset()


__all__ = ["StateApplier", "Transform"]
