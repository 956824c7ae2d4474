import os

import numpy as np
import PIL.Image
import pygame
import pytest

import viewer
from mandelbrot import FrameLoop, PlanePoint


def _config(*args):
    parser = viewer.build_parser()
    opt = parser.parse_args(list(args))
    return viewer.resolve_config(opt, parser)


def test_defaults():
    config = _config()
    assert config.mode == "window"
    assert config.control_flow == "wait"
    assert config.output_path is None
    params = config.params
    assert (params.pixel_width, params.pixel_height) == (640, 480)
    assert params.center == PlanePoint(-0.5, 0.0)
    assert params.plane_width == 4.0
    assert params.max_iterations == 256
    assert params.escape_radius_squared == 32.0


def test_image_mode_default_output():
    config = _config("--mode", "image", "--format", "JPG")
    assert config.image_format == "jpg"
    assert config.output_path.name == "mandelbrot.jpg"


def test_image_mode_adds_missing_suffix(tmp_path):
    config = _config("--mode", "image", "--output", str(tmp_path / "frame"))
    assert config.output_path == (tmp_path / "frame.png").resolve()


@pytest.mark.parametrize("args", [
    ["--mode", "image", "--output", "frame.jpg"],
    ["--output", "frame.png"],
    ["--width", "0"],
    ["--height", "-5"],
    ["--plane-width", "0"],
    ["--max-iterations", "0"],
    ["--control-flow", "sometimes"],
])
def test_invalid_arguments_exit(args):
    with pytest.raises(SystemExit):
        _config(*args)


def test_export_image_writes_rgb_file(tmp_path):
    output = tmp_path / "out" / "small.png"
    config = _config("--mode", "image", "--width", "8", "--height", "6", "--output", str(output))
    path = viewer.export_image(config)
    assert path == output.resolve()
    with PIL.Image.open(path) as image:
        assert image.size == (8, 6)
        assert image.mode == "RGB"


def test_pil_format_name():
    assert viewer._pil_format_name("jpg") == "JPEG"
    assert viewer._pil_format_name("tif") == "TIFF"
    assert viewer._pil_format_name("png") == "PNG"


def test_pygame_surface_presents_frame(monkeypatch):
    monkeypatch.setitem(os.environ, "SDL_VIDEODRIVER", "dummy")
    pygame.display.init()
    try:
        surface = viewer.PygameSurface(pygame.display.set_mode((6, 4), 0, 32))
        loop = FrameLoop(_config("--width", "6", "--height", "4").params)
        loop.surface_created(*surface.size)
        result = loop.redraw(surface)
        assert result is not None
        r, g, b, _ = surface.screen.get_at((0, 0))
        assert (r, g, b) == tuple(int(v) for v in result.rgba[0, 0, :3])
        assert len(surface.request_frame()) == 6 * 4 * 4
    finally:
        pygame.display.quit()


def test_verbose_flag_only_counts_for_the_viewer():
    assert viewer._verbose_requested(["viewer.py", "-v"])
    assert viewer._verbose_requested(["/usr/bin/mandelbrot-viewer", "--verbose"])
    assert not viewer._verbose_requested(["viewer.py"])
    assert not viewer._verbose_requested(["/usr/bin/pytest", "-v"])
    assert not viewer._verbose_requested([])


class ScriptedEvents:
    """Stand-in for the pygame event queue, fed one batch per drawn frame."""

    def __init__(self, batches):
        self.batches = list(batches)
        self.pending = []

    def feed_next(self):
        if self.batches:
            self.pending.extend(self.batches.pop(0))

    def get(self):
        events, self.pending = self.pending, []
        return events

    def wait(self):
        if self.pending:
            return self.pending.pop(0)
        # Nothing left to wake the loop: close the window.
        return pygame.event.Event(pygame.QUIT)

    def post(self, event):
        self.pending.append(event)
        return True


def _resize(width, height):
    return pygame.event.Event(pygame.VIDEORESIZE, w=width, h=height, size=(width, height))


def _run_scripted_window(monkeypatch, control_flow):
    monkeypatch.setitem(os.environ, "SDL_VIDEODRIVER", "dummy")
    events = ScriptedEvents([
        [_resize(30, 20)],
        [_resize(80, 60)],
        [],
        [pygame.event.Event(pygame.QUIT)],
    ])
    frames = []

    class RecordingLoop(FrameLoop):
        def redraw(self, surface):
            result = super().redraw(surface)
            if result is not None:
                assert surface.size == self.size
                frames.append((self.size, result.rgba.tobytes()))
                events.feed_next()
            return result

    monkeypatch.setattr(viewer, "FrameLoop", RecordingLoop)
    monkeypatch.setattr(pygame.event, "get", events.get)
    monkeypatch.setattr(pygame.event, "wait", events.wait)
    monkeypatch.setattr(pygame.event, "post", events.post)

    config = _config("--width", "64", "--height", "48", "--control-flow", control_flow)
    viewer.run_window(config)
    return frames


@pytest.mark.parametrize("control_flow", ["poll", "wait"])
def test_window_applies_resizes_and_keeps_redrawing(monkeypatch, control_flow):
    frames = _run_scripted_window(monkeypatch, control_flow)
    sizes = [size for size, _ in frames]
    # Frames keep coming after the last resize until the window closes, and
    # the resize below the minimum is clamped to the initial size.
    assert sizes == [(64, 48), (64, 48), (80, 60), (80, 60)]
    assert not pygame.get_init()


def test_poll_and_wait_draw_identical_frames(monkeypatch):
    polled = _run_scripted_window(monkeypatch, "poll")
    waited = _run_scripted_window(monkeypatch, "wait")
    assert polled == waited
