"""Rendering primitives for Mandelbrot frames."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional

import numpy as np
import tensorflow as tf

from .plane import PlanePoint, Viewport

MAX_ITERATIONS = 256
ESCAPE_RADIUS_SQUARED = 32.0
PLANE_WIDTH = 4.0

# Cosine palette coefficients: channel = b * cos(2pi * (c * t + d)) + a
PALETTE_A = (0.5, 0.5, 0.5)
PALETTE_B = (0.5, 0.5, 0.5)
PALETTE_C = (1.0, 1.0, 1.0)
PALETTE_D = (0.0, 0.10, 0.20)

BYTES_PER_PIXEL = 4


@dataclass(frozen=True)
class ComplexNumber:
    """Complex value with single precision components."""

    real: float
    imag: float

    def __add__(self, other: ComplexNumber) -> ComplexNumber:
        return ComplexNumber(self.real + other.real, self.imag + other.imag)

    def __mul__(self, other: ComplexNumber) -> ComplexNumber:
        return ComplexNumber(
            self.real * other.real - self.imag * other.imag,
            self.real * other.imag + self.imag * other.real,
        )

    def magnitude_squared(self) -> float:
        return self.real * self.real + self.imag * self.imag


@dataclass(frozen=True)
class RenderParameters:
    """Parameters that describe a single render of the Mandelbrot set."""

    pixel_width: int
    pixel_height: int
    plane_width: float = PLANE_WIDTH
    center: PlanePoint = field(default_factory=lambda: PlanePoint(-0.5, 0.0))
    max_iterations: int = MAX_ITERATIONS
    escape_radius_squared: float = ESCAPE_RADIUS_SQUARED

    def __post_init__(self) -> None:
        if self.pixel_width <= 0 or self.pixel_height <= 0:
            raise ValueError(
                f"pixel dimensions must be positive, got {self.pixel_width}x{self.pixel_height}"
            )
        if not self.plane_width > 0:
            raise ValueError(f"plane_width must be positive, got {self.plane_width}")
        if self.max_iterations <= 0:
            raise ValueError(f"max_iterations must be positive, got {self.max_iterations}")
        if not self.escape_radius_squared > 0:
            raise ValueError(
                f"escape_radius_squared must be positive, got {self.escape_radius_squared}"
            )

    @property
    def frame_length(self) -> int:
        return self.pixel_width * self.pixel_height * BYTES_PER_PIXEL

    def viewport(self) -> Viewport:
        return Viewport(
            center=self.center,
            plane_width=self.plane_width,
            pixel_width=self.pixel_width,
            pixel_height=self.pixel_height,
        )

    def with_size(self, pixel_width: int, pixel_height: int) -> RenderParameters:
        return replace(self, pixel_width=int(pixel_width), pixel_height=int(pixel_height))


@dataclass(frozen=True)
class RenderResult:
    """Container for the numerical results of a Mandelbrot render."""

    smooth: np.ndarray
    iterations: np.ndarray
    phase: np.ndarray
    rgba: np.ndarray
    viewport: Viewport


def escape_time(
    point: PlanePoint,
    max_iterations: int = MAX_ITERATIONS,
    escape_radius_squared: float = ESCAPE_RADIUS_SQUARED,
) -> tuple[int, np.float32]:
    """Iterate ``z = z*z + c`` from zero and return the step count and final ``|z|^2``."""

    c = ComplexNumber(np.float32(point.x), np.float32(point.y))
    z = ComplexNumber(np.float32(0.0), np.float32(0.0))
    limit = np.float32(escape_radius_squared)
    i = 0
    with np.errstate(over="ignore", invalid="ignore"):
        while i < max_iterations and z.magnitude_squared() < limit:
            z = z * z + c
            i += 1
        return i, np.float32(z.magnitude_squared())


def escape_value(
    point: PlanePoint,
    max_iterations: int = MAX_ITERATIONS,
    escape_radius_squared: float = ESCAPE_RADIUS_SQUARED,
) -> float:
    """Smooth escape-time estimate, roughly in ``[0, 1]``.

    Points that never escape usually finish with ``|z|^2 <= 1``; the double
    logarithm is then undefined and the result is NaN.
    """

    iterations, magnitude = escape_time(point, max_iterations, escape_radius_squared)
    with np.errstate(divide="ignore", invalid="ignore"):
        result = (np.float32(iterations) - np.log2(np.log2(magnitude))) / np.float32(max_iterations)
    return float(result)


def palette_phase(value):
    """Phase-shift an escape value into the palette input ``(2v + 0.5) mod 1``."""

    with np.errstate(invalid="ignore"):
        return np.fmod(2.0 * np.asarray(value, dtype=np.float64) + 0.5, 1.0)


def palette_bytes(t) -> np.ndarray:
    """Map palette input ``t`` (any shape) to RGB bytes with a trailing channel axis.

    Byte conversion saturates: NaN becomes 0 and values are clamped to
    ``[0, 255]`` before truncation toward zero.
    """

    t = np.asarray(t, dtype=np.float64)[..., np.newaxis]
    a = np.asarray(PALETTE_A)
    b = np.asarray(PALETTE_B)
    c = np.asarray(PALETTE_C)
    d = np.asarray(PALETTE_D)
    with np.errstate(invalid="ignore"):
        channels = b * np.cos(2.0 * np.pi * (c * t + d)) + a
        scaled = np.nan_to_num(255.0 * channels, nan=0.0, posinf=255.0, neginf=0.0)
    return np.trunc(np.clip(scaled, 0.0, 255.0)).astype(np.uint8)


def palette_color(t: float) -> tuple[int, int, int]:
    r, g, b = palette_bytes(t)
    return int(r), int(g), int(b)


@tf.function
def _escape_step(
    zr: tf.Tensor,
    zi: tf.Tensor,
    cr: tf.Tensor,
    ci: tf.Tensor,
    ns: tf.Tensor,
    active: tf.Tensor,
    radius_sq: tf.Tensor,
) -> tuple[tf.Tensor, tf.Tensor, tf.Tensor, tf.Tensor]:
    """Perform a single Mandelbrot iteration for points that have not escaped."""

    zr_new = zr * zr - zi * zi + cr
    zi_new = zr * zi + zi * zr + ci
    zr = tf.where(active, zr_new, zr)
    zi = tf.where(active, zi_new, zi)
    ns = ns + tf.cast(active, tf.int32)
    new_active = tf.logical_and(active, zr * zr + zi * zi < radius_sq)
    return zr, zi, ns, new_active


@tf.function
def _escape_run(
    cr: tf.Tensor,
    ci: tf.Tensor,
    max_iterations: tf.Tensor,
    radius_sq: tf.Tensor,
) -> tuple[tf.Tensor, tf.Tensor, tf.Tensor, tf.Tensor, tf.Tensor]:
    """Iterate the Mandelbrot formula using a TensorFlow while loop."""

    max_iterations = tf.cast(max_iterations, tf.int32)
    i = tf.constant(0, dtype=tf.int32)
    zr = tf.zeros_like(cr)
    zi = tf.zeros_like(ci)
    ns = tf.zeros_like(cr, tf.int32)
    active = zr * zr + zi * zi < radius_sq

    def cond(i, zr, zi, ns, active):
        return tf.logical_and(tf.less(i, max_iterations), tf.reduce_any(active))

    def body(i, zr, zi, ns, active):
        zr, zi, ns, active = _escape_step(zr, zi, cr, ci, ns, active, radius_sq)
        return i + 1, zr, zi, ns, active

    return tf.while_loop(cond, body, (i, zr, zi, ns, active))


def render_frame(params: RenderParameters, *, device: Optional[str] = None) -> RenderResult:
    """Render a Mandelbrot frame given the supplied parameters."""

    viewport = params.viewport()
    xs, ys = viewport.sample_grid()

    with tf.device(device if device is not None else "/CPU:0"):
        x_tf = tf.convert_to_tensor(xs.astype(np.float32), dtype=tf.float32)
        y_tf = tf.convert_to_tensor(ys.astype(np.float32), dtype=tf.float32)
        CR, CI = tf.meshgrid(x_tf, y_tf)
        max_iterations = tf.constant(params.max_iterations, dtype=tf.int32)
        radius_sq = tf.constant(params.escape_radius_squared, dtype=tf.float32)

        _, zr, zi, ns, _ = _escape_run(CR, CI, max_iterations, radius_sq)

        magnitude = zr * zr + zi * zi
        log2 = tf.math.log(tf.constant(2.0, dtype=tf.float32))
        log_log = tf.math.log(tf.math.log(magnitude) / log2) / log2
        smooth = (tf.cast(ns, tf.float32) - log_log) / tf.cast(max_iterations, tf.float32)

    smooth = smooth.numpy()
    phase = palette_phase(smooth)
    rgb = palette_bytes(phase)
    alpha = np.full(rgb.shape[:-1] + (1,), 255, dtype=np.uint8)

    return RenderResult(
        smooth=smooth,
        iterations=ns.numpy(),
        phase=phase,
        rgba=np.concatenate((rgb, alpha), axis=-1),
        viewport=viewport,
    )


def fill_frame(
    buffer,
    pixel_width: int,
    pixel_height: int,
    params: Optional[RenderParameters] = None,
    *,
    device: Optional[str] = None,
) -> RenderResult:
    """Write one RGBA frame, row-major from the top-left, into ``buffer``.

    ``buffer`` is any writable bytes-like object of exactly
    ``pixel_width * pixel_height * 4`` bytes. It is only written during the
    call; no reference to it is kept.
    """

    if params is None:
        params = RenderParameters(pixel_width=pixel_width, pixel_height=pixel_height)
    else:
        params = params.with_size(pixel_width, pixel_height)

    view = memoryview(buffer).cast("B")
    if view.readonly:
        raise TypeError("frame buffer must be writable")
    if view.nbytes != params.frame_length:
        raise ValueError(
            f"frame buffer holds {view.nbytes} bytes, expected {params.frame_length} "
            f"for {pixel_width}x{pixel_height} RGBA"
        )

    result = render_frame(params, device=device)
    frame = np.frombuffer(view, dtype=np.uint8)
    frame[:] = result.rgba.reshape(-1)
    return result
