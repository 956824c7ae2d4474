"""Public API for Mandelbrot rendering utilities."""

from .plane import PlanePoint, Viewport, map_pixel_to_plane
from .renderer import (
    ComplexNumber,
    RenderParameters,
    RenderResult,
    escape_time,
    escape_value,
    fill_frame,
    palette_bytes,
    palette_color,
    palette_phase,
    render_frame,
)
from .host import FrameLoop, PresentationSurface, SurfaceState

__all__ = [
    "ComplexNumber",
    "FrameLoop",
    "PlanePoint",
    "PresentationSurface",
    "RenderParameters",
    "RenderResult",
    "SurfaceState",
    "Viewport",
    "escape_time",
    "escape_value",
    "fill_frame",
    "map_pixel_to_plane",
    "palette_bytes",
    "palette_color",
    "palette_phase",
    "render_frame",
]
