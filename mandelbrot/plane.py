"""Mapping between pixel grids and the complex plane."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class PlanePoint:
    """A point on the real/imaginary plane."""

    x: float
    y: float


@dataclass(frozen=True)
class Viewport:
    """Window onto the complex plane for a grid of ``pixel_width`` x ``pixel_height`` pixels.

    Both axes share the horizontal step, so the visible plane height follows
    the pixel aspect ratio.
    """

    center: PlanePoint
    plane_width: float
    pixel_width: int
    pixel_height: int

    @property
    def ratio(self) -> float:
        return self.pixel_height / self.pixel_width

    @property
    def plane_height(self) -> float:
        return self.plane_width * self.ratio

    @property
    def origin(self) -> PlanePoint:
        """Plane coordinate of the top-left pixel."""

        return PlanePoint(
            x=self.center.x - self.plane_width / 2,
            y=self.center.y - self.plane_height / 2,
        )

    @property
    def increment(self) -> float:
        return self.plane_width / self.pixel_width

    def sample_grid(self) -> tuple[np.ndarray, np.ndarray]:
        """Return the x coordinate of every column and the y coordinate of every row."""

        origin = self.origin
        inc = np.float64(self.increment)
        xs = np.float64(origin.x) + np.arange(self.pixel_width, dtype=np.float64) * inc
        ys = np.float64(origin.y) + np.arange(self.pixel_height, dtype=np.float64) * inc
        return xs, ys


def map_pixel_to_plane(pixel: tuple[int, int], viewport: Viewport) -> PlanePoint:
    """Map a ``(col, row)`` pixel coordinate to its point on the plane."""

    col, row = pixel
    origin = viewport.origin
    inc = viewport.increment
    return PlanePoint(x=origin.x + col * inc, y=origin.y + row * inc)
