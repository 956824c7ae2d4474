"""Frame loop glue between the renderer and a host presentation layer."""

from __future__ import annotations

import enum
from typing import Optional, Protocol

from .renderer import RenderParameters, RenderResult, fill_frame


class PresentationSurface(Protocol):
    """What the host windowing layer offers to the frame loop."""

    def request_frame(self):
        """Grant exclusive write access to a ``width*height*4`` RGBA buffer."""

    def present_frame(self, buffer) -> None:
        """Take back a filled buffer and display it."""


class SurfaceState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"


class FrameLoop:
    """Track the drawable size and fill frames once a surface exists.

    Frame operations are no-ops until :meth:`surface_created` moves the loop
    to ``READY``. Resizes are recorded and applied before the next fill.
    The surface itself is never stored; it is passed to each call.
    """

    def __init__(self, params: RenderParameters, *, device: Optional[str] = None) -> None:
        self.params = params
        self.device = device
        self.state = SurfaceState.UNINITIALIZED
        self._pending_size: Optional[tuple[int, int]] = None

    @property
    def ready(self) -> bool:
        return self.state is SurfaceState.READY

    @property
    def size(self) -> tuple[int, int]:
        return self.params.pixel_width, self.params.pixel_height

    def surface_created(self, width: int, height: int) -> None:
        self.params = self.params.with_size(width, height)
        self._pending_size = None
        self.state = SurfaceState.READY

    def resize(self, width: int, height: int) -> None:
        """Record new pixel dimensions for the next frame."""

        self._pending_size = (int(width), int(height))

    def _apply_pending_size(self) -> bool:
        if self._pending_size is None:
            return True
        width, height = self._pending_size
        if width <= 0 or height <= 0:
            # Minimised windows report a zero size; wait for a usable one.
            return False
        self.params = self.params.with_size(width, height)
        self._pending_size = None
        return True

    def draw(self, buffer) -> Optional[RenderResult]:
        """Fill ``buffer`` with the current frame, or return None when not drawable."""

        if not self.ready or not self._apply_pending_size():
            return None
        width, height = self.size
        return fill_frame(buffer, width, height, self.params, device=self.device)

    def redraw(self, surface: PresentationSurface) -> Optional[RenderResult]:
        """Request a buffer from ``surface``, fill it and hand it back for display."""

        if not self.ready or not self._apply_pending_size():
            return None
        buffer = surface.request_frame()
        result = self.draw(buffer)
        surface.present_frame(buffer)
        return result
