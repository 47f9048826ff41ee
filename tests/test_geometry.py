"""
Tests for the geometry kernel.
"""

import pytest

from obb_detection.geometry import (
    Point,
    clip_polygon,
    compute_intersection,
    is_inside,
    polygon_area,
)


def _square(x0, y0, size):
    """Axis-aligned square wound TL, TR, BR, BL in image coordinates."""
    return [
        Point(x0, y0),
        Point(x0 + size, y0),
        Point(x0 + size, y0 + size),
        Point(x0, y0 + size),
    ]


def test_is_inside_left_of_edge():
    """Points left of (or on) the directed edge are inside."""
    start, end = Point(0, 0), Point(1, 0)

    assert is_inside(Point(0, 1), start, end)
    assert is_inside(Point(0.5, 0), start, end)  # On the edge
    assert not is_inside(Point(0, -1), start, end)


def test_compute_intersection_crossing_segment():
    """A vertical segment crossing the x-axis meets it at y == 0."""
    p = compute_intersection(Point(0.5, -1), Point(0.5, 1), Point(0, 0), Point(1, 0))

    assert p.x == pytest.approx(0.5)
    assert p.y == pytest.approx(0.0)


def test_compute_intersection_parallel_returns_end():
    """An exactly parallel segment does not divide by zero."""
    e = Point(3, 0)
    p = compute_intersection(Point(2, 0), e, Point(0, 0), Point(1, 0))
    assert p == e


def test_polygon_area_square():
    assert polygon_area(_square(0, 0, 10)) == pytest.approx(100.0)


def test_polygon_area_order_invariance():
    """Area ignores winding direction and starting vertex."""
    square = _square(3, -2, 4)

    assert polygon_area(list(reversed(square))) == pytest.approx(16.0)
    assert polygon_area(square[2:] + square[:2]) == pytest.approx(16.0)


def test_polygon_area_degenerate():
    """Fewer than three points, or collinear points, have zero area."""
    assert polygon_area([]) == 0.0
    assert polygon_area([Point(0, 0), Point(5, 5)]) == 0.0
    assert polygon_area([Point(0, 0), Point(1, 1), Point(2, 2)]) == pytest.approx(0.0)


def test_clip_polygon_with_itself():
    """Clipping a polygon against itself preserves its area."""
    square = _square(0, 0, 10)
    clipped = clip_polygon(square, square)
    assert polygon_area(clipped) == pytest.approx(100.0)


def test_clip_polygon_partial_overlap():
    """Two 10x10 squares offset by 5 in x share a 5x10 region."""
    clipped = clip_polygon(_square(0, 0, 10), _square(5, 0, 10))

    assert polygon_area(clipped) == pytest.approx(50.0)
    assert all(5.0 - 1e-9 <= p.x <= 10.0 + 1e-9 for p in clipped)


def test_clip_polygon_disjoint_is_empty():
    """Non-overlapping polygons produce an empty clip result."""
    assert clip_polygon(_square(0, 0, 10), _square(20, 0, 10)) == []


def test_clip_polygon_contained_subject():
    """A subject fully inside the clip polygon is returned unchanged."""
    inner = _square(2, 2, 3)
    clipped = clip_polygon(inner, _square(0, 0, 10))
    assert clipped == inner


def test_clip_polygon_requires_consistent_winding():
    """A clip polygon wound the other way leaves no area."""
    square = _square(0, 0, 10)
    clipped = clip_polygon(square, list(reversed(square)))
    assert polygon_area(clipped) == pytest.approx(0.0)
