import pytest

from mandelbrot import PlanePoint, Viewport, map_pixel_to_plane


def _viewport(width=640, height=480, center=(-0.5, 0.0), plane_width=4.0):
    return Viewport(center=PlanePoint(*center), plane_width=plane_width, pixel_width=width, pixel_height=height)


def test_top_left_pixel_maps_to_origin():
    viewport = _viewport()
    point = map_pixel_to_plane((0, 0), viewport)
    assert point == PlanePoint(-0.5 - 4.0 / 2, 0.0 - (4.0 * 480 / 640) / 2)
    assert point == viewport.origin


@pytest.mark.parametrize("width,height,center,plane_width", [
    (640, 480, (-0.5, 0.0), 4.0),
    (100, 300, (-1.0, 0.25), 2.5),
    (7, 3, (0.0, 0.0), 0.01),
])
def test_last_column_is_within_one_increment_of_right_edge(width, height, center, plane_width):
    viewport = _viewport(width, height, center, plane_width)
    point = map_pixel_to_plane((width - 1, 0), viewport)
    assert abs(point.x - (center[0] + plane_width / 2)) <= viewport.increment + 1e-12


def test_vertical_step_matches_horizontal_step():
    viewport = _viewport(width=200, height=50, plane_width=4.0)
    a = map_pixel_to_plane((3, 10), viewport)
    b = map_pixel_to_plane((4, 11), viewport)
    assert b.x - a.x == pytest.approx(0.02)
    assert b.y - a.y == pytest.approx(0.02)
    assert viewport.plane_height == pytest.approx(1.0)


def test_sample_grid_agrees_with_pixel_mapping():
    viewport = _viewport(width=5, height=3, center=(0.3, -0.2), plane_width=1.5)
    xs, ys = viewport.sample_grid()
    assert xs.shape == (5,)
    assert ys.shape == (3,)
    for row in range(3):
        for col in range(5):
            point = map_pixel_to_plane((col, row), viewport)
            assert xs[col] == point.x
            assert ys[row] == point.y
