"""Frame capture: render the current host view and encode it as PNG bytes.

The sync loop only needs `capture() -> bytes`; any backend that can produce
an encoded frame satisfies `FrameCapture`. `PngFrameCapture` wraps a renderer
callable returning an HxWx3/4 uint8 array.
"""

from __future__ import annotations

from io import BytesIO
from typing import Callable, Optional, Protocol, Tuple

import numpy as np
from PIL import Image

from simbridge.common.errors import CaptureError
from simbridge.common.protocol import DEFAULT_FRAME_HEIGHT, DEFAULT_FRAME_WIDTH

from .anchors import Transform


class FrameCapture(Protocol):
    def capture(self) -> bytes: ...


class PngFrameCapture:
    def __init__(self, render: Callable[[], np.ndarray], *, compress_level: int = 1) -> None:
        self.render = render
        self.compress_level = int(max(0, min(9, compress_level)))
        self.frames_captured = 0

    def capture(self) -> bytes:
        try:
            arr = np.asarray(self.render())
        except Exception as e:
            raise CaptureError(f"renderer failed: {e}") from e
        if arr.ndim != 3 or arr.shape[-1] not in (3, 4) or arr.shape[0] == 0 or arr.shape[1] == 0:
            raise CaptureError(f"expected HxWx3 or HxWx4 frame, got shape {arr.shape}")
        if arr.dtype != np.uint8:
            arr = np.clip(arr, 0, 255).astype(np.uint8)
        try:
            img = Image.fromarray(np.ascontiguousarray(arr))
            buf = BytesIO()
            img.save(buf, format="PNG", compress_level=self.compress_level)
        except (OSError, ValueError) as e:
            raise CaptureError(f"PNG encoding failed: {e}") from e
        data = buf.getvalue()
        if not data:
            raise CaptureError("PNG encoder produced no bytes")
        self.frames_captured += 1
        return data


class AnchorSketchRenderer:
    """Headless stand-in renderer: top-down sketch of the anchors around the camera.

    x maps to columns, z to rows; `extent_m` metres either side of the camera
    fill the image. Camera is white, left hand red, right hand blue.
    """

    BACKGROUND = (32, 32, 32)
    CAMERA = (255, 255, 255)
    LEFT = (220, 40, 40)
    RIGHT = (40, 80, 220)

    def __init__(
        self,
        *,
        camera: Transform,
        left_hand: Transform,
        right_hand: Transform,
        width: int = DEFAULT_FRAME_WIDTH,
        height: int = DEFAULT_FRAME_HEIGHT,
        extent_m: float = 1.0,
    ) -> None:
        self.camera = camera
        self.left_hand = left_hand
        self.right_hand = right_hand
        self.w = int(width)
        self.h = int(height)
        self.extent_m = float(extent_m)

    def _to_pixel(self, position, origin) -> Optional[Tuple[int, int]]:
        dx = float(position[0]) - float(origin[0])
        dz = float(position[2]) - float(origin[2])
        col = int(round((dx / self.extent_m + 1.0) * 0.5 * (self.w - 1)))
        row = int(round((1.0 - (dz / self.extent_m + 1.0) * 0.5) * (self.h - 1)))
        if 0 <= col < self.w and 0 <= row < self.h:
            return row, col
        return None

    def _dot(self, frame: np.ndarray, pixel: Optional[Tuple[int, int]], color) -> None:
        if pixel is None:
            return
        r, c = pixel
        frame[max(0, r - 1) : min(self.h, r + 2), max(0, c - 1) : min(self.w, c + 2), :] = color

    def __call__(self) -> np.ndarray:
        frame = np.empty((self.h, self.w, 3), dtype=np.uint8)
        frame[:, :, :] = self.BACKGROUND
        origin = self.camera.position
        self._dot(frame, self._to_pixel(origin, origin), self.CAMERA)
        self._dot(frame, self._to_pixel(self.left_hand.position, origin), self.LEFT)
        self._dot(frame, self._to_pixel(self.right_hand.position, origin), self.RIGHT)
        return frame


__all__ = ["AnchorSketchRenderer", "FrameCapture", "PngFrameCapture"]
