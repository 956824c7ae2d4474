import os
import sys
import warnings
from dataclasses import dataclass
from pathlib import Path

_VERBOSE_FLAGS = {"--verbose", "-v"}
_SCRIPT_NAMES = {"viewer", "mandelbrot-viewer"}


def _verbose_requested(argv):
    """True when ``argv`` runs this viewer with a verbose flag.

    Flags given to some other program that imports the module (a test runner,
    say) do not count.
    """

    if not argv or Path(argv[0]).stem not in _SCRIPT_NAMES:
        return False
    return any(arg in _VERBOSE_FLAGS for arg in argv[1:])


_cli_verbose = _verbose_requested(sys.argv)
_env_log_level = os.environ.get("TF_CPP_MIN_LOG_LEVEL")
_suppress_messages = (not _cli_verbose) and _env_log_level != "0"

if _suppress_messages and _env_log_level is None:
    os.environ["TF_CPP_MIN_LOG_LEVEL"] = "3"

if _suppress_messages:
    os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")
    warnings.filterwarnings(
        "ignore",
        message=r"Protobuf gencode version .* is exactly one major version older than the runtime version .*",
        category=UserWarning,
        module="google.protobuf",
    )

VERBOSE = _cli_verbose


def log(message, *args, **kwargs):
    if VERBOSE:
        print(message, *args, **kwargs)


import tensorflow as tf
import numpy as np

if _suppress_messages:
    tf.get_logger().setLevel("ERROR")
    for handler in tf.get_logger().handlers:
        handler.setLevel("ERROR")

# Presentation and export
import PIL.Image
import pygame

from mandelbrot import FrameLoop, PlanePoint, RenderParameters, render_frame

log("TensorFlow version: %s" % tf.__version__)

# Place the escape-time iteration on the first GPU when there is one.
gpus = tf.config.list_physical_devices('GPU')
if gpus:
    try:
        for gpu in gpus:
            tf.config.experimental.set_memory_growth(gpu, True)
        DEVICE = '/GPU:0'
        log("GPU found, using %s" % gpus[0].name)
    except RuntimeError as e:
        log(e)
        DEVICE = '/CPU:0'
else:
    DEVICE = '/CPU:0'
    log("No GPU found, using CPU")

from argparse import ArgumentParser

WINDOW_TITLE = "Mandelbrot"
VALID_MODES = ("window", "image")
CONTROL_FLOWS = ("poll", "wait")
REDRAW_REQUESTED = pygame.event.custom_type()


@dataclass
class ViewerConfig:
    mode: str
    params: RenderParameters
    output_path: Path | None
    image_format: str
    control_flow: str


def build_parser():
    parser = ArgumentParser(description="Render the Mandelbrot set to a window or an image file.")

    parser.add_argument('--mode', choices=VALID_MODES, default='window',
                        help='"window" opens a resizable live view, "image" renders one frame to a file.')

    parser.add_argument('--width', type=int,
                        dest='width', help='frame width in pixels (also the minimum window width)',
                        metavar='WIDTH', default=640)

    parser.add_argument('--height', type=int,
                        dest='height', help='frame height in pixels (also the minimum window height)',
                        metavar='HEIGHT', default=480)

    parser.add_argument('--center-x', type=float,
                        dest='center_x', help='real part of the point shown at the center of the frame',
                        metavar='CENTER_X', default=-0.5)

    parser.add_argument('--center-y', type=float,
                        dest='center_y', help='imaginary part of the point shown at the center of the frame',
                        metavar='CENTER_Y', default=0.0)

    parser.add_argument('--plane-width', type=float,
                        dest='plane_width', help='horizontal span of the complex plane visible in the frame',
                        metavar='PLANE_WIDTH', default=4.0)

    parser.add_argument('--max-iterations', type=int,
                        dest='max_iterations', help='maximum number of iterations before a point counts as inside',
                        metavar='MAX_ITERATIONS', default=256)

    parser.add_argument('--escape-radius-squared', type=float,
                        dest='escape_radius_squared', help='squared magnitude at which a point counts as escaped',
                        metavar='RADIUS_SQ', default=32.0)

    parser.add_argument('--control-flow', choices=CONTROL_FLOWS, default='wait',
                        help='"poll" drains events without blocking, "wait" blocks until the next event. Each frame requests the next one.')

    parser.add_argument('--output', dest='output', type=str,
                        help='Destination file for the image mode. Default: "mandelbrot.<format>".')

    parser.add_argument('--format', type=str,
                        dest='format', help='file format for the image mode. Can be any extension supported by Pillow. Default: "png".',
                        metavar='FORMAT', default='png')

    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable verbose logging, including TensorFlow and hardware diagnostics.')

    return parser


def resolve_config(opt, parser: ArgumentParser) -> ViewerConfig:
    if opt.width <= 0 or opt.height <= 0:
        parser.error("--width and --height must be positive.")

    try:
        params = RenderParameters(
            pixel_width=opt.width,
            pixel_height=opt.height,
            plane_width=opt.plane_width,
            center=PlanePoint(opt.center_x, opt.center_y),
            max_iterations=opt.max_iterations,
            escape_radius_squared=opt.escape_radius_squared,
        )
    except ValueError as exc:
        parser.error(str(exc))

    image_format = (opt.format or "png").lower().lstrip(".")
    if not image_format:
        image_format = "png"

    output_path: Path | None = None
    if opt.mode == "image":
        if opt.output:
            output_path = Path(opt.output).expanduser()
            if output_path.exists() and output_path.is_dir():
                parser.error("--output must point to a file, not a directory.")
            suffix = output_path.suffix
            expected_suffix = f".{image_format}"
            if suffix:
                if suffix.lower() != expected_suffix.lower():
                    parser.error(f"--output extension {suffix} does not match --format {image_format}.")
            else:
                output_path = output_path.with_suffix(expected_suffix)
        else:
            output_path = Path(f"mandelbrot.{image_format}")
        output_path = output_path.resolve()
    elif opt.output:
        parser.error("--output is only valid with --mode image.")

    return ViewerConfig(
        mode=opt.mode,
        params=params,
        output_path=output_path,
        image_format=image_format,
        control_flow=opt.control_flow,
    )


def _pil_format_name(ext: str) -> str:
    upper = ext.upper()
    if upper == "JPG":
        return "JPEG"
    if upper == "TIF":
        return "TIFF"
    return upper


def write_single_image(image: PIL.Image.Image, output_path: Path, image_format: str) -> None:
    """Write a single image to ``output_path`` using the provided format."""

    pil_format = _pil_format_name(image_format)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    image.save(str(output_path), format=pil_format)


def export_image(config: ViewerConfig) -> Path:
    """Render one frame and write it to ``config.output_path``."""

    result = render_frame(config.params, device=DEVICE)
    # Alpha is always 255.
    image = PIL.Image.fromarray(np.ascontiguousarray(result.rgba[..., :3]))
    write_single_image(image, config.output_path, config.image_format)
    log("Wrote %dx%d frame to %s" % (config.params.pixel_width, config.params.pixel_height, config.output_path))
    return config.output_path


class PygameSurface:
    """Presentation surface backed by the pygame display."""

    def __init__(self, screen: pygame.Surface) -> None:
        self.screen = screen

    @property
    def size(self) -> tuple[int, int]:
        return self.screen.get_size()

    def request_frame(self) -> bytearray:
        width, height = self.size
        return bytearray(width * height * 4)

    def present_frame(self, buffer) -> None:
        image = pygame.image.frombuffer(buffer, self.size, "RGBA")
        self.screen.blit(image, (0, 0))
        pygame.display.flip()


def _open_window(size: tuple[int, int]) -> pygame.Surface:
    return pygame.display.set_mode(size, pygame.RESIZABLE)


def run_window(config: ViewerConfig) -> None:
    """Run the interactive view until the window is closed."""

    min_size = (config.params.pixel_width, config.params.pixel_height)
    loop = FrameLoop(config.params, device=DEVICE)

    pygame.init()
    try:
        pygame.display.set_caption(WINDOW_TITLE)
        surface = PygameSurface(_open_window(min_size))
        loop.surface_created(*surface.size)
        log("Surface created: %dx%d" % surface.size)

        running = True
        needs_redraw = True
        while running:
            if config.control_flow == "wait" and not needs_redraw:
                events = [pygame.event.wait()] + pygame.event.get()
            else:
                events = pygame.event.get()

            for event in events:
                if event.type == pygame.QUIT:
                    log("The close button was pressed; stopping")
                    running = False
                elif event.type == pygame.VIDEORESIZE:
                    width = max(event.w, min_size[0])
                    height = max(event.h, min_size[1])
                    surface.screen = _open_window((width, height))
                    log("Window resized: %dx%d" % (width, height))
                    loop.resize(*surface.size)
                    needs_redraw = True
                elif event.type in (pygame.WINDOWEXPOSED, REDRAW_REQUESTED):
                    needs_redraw = True

            if not running:
                break

            if needs_redraw or config.control_flow == "poll":
                if loop.redraw(surface) is not None:
                    log("Frame size: %dx%d" % loop.size)
                    needs_redraw = False
                    pygame.event.post(pygame.event.Event(REDRAW_REQUESTED))
    finally:
        pygame.quit()


def main():
    parser = build_parser()
    opt = parser.parse_args()

    global VERBOSE
    VERBOSE = bool(opt.verbose)

    config = resolve_config(opt, parser)

    if config.mode == "image":
        export_image(config)
    else:
        run_window(config)


if __name__ == '__main__':
    main()
