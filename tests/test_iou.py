"""
Tests for rotated and axis-aligned IoU.
"""

import math

import pytest

from obb_detection.iou import axis_aligned_iou, rotated_iou
from obb_detection.postprocessor import decode_corners


def test_rotated_iou_shifted_box():
    """A 10x10 box against a copy shifted by 5 in x: 50 / 150."""
    a = decode_corners(0, 0, 10, 10, 0.0)
    b = decode_corners(5, 0, 10, 10, 0.0)

    assert rotated_iou(a, b) == pytest.approx(1 / 3)


def test_rotated_iou_identity():
    """A rotated box overlaps itself completely."""
    a = decode_corners(40, 25, 30, 12, 0.7)
    assert rotated_iou(a, a) == pytest.approx(1.0)


def test_rotated_iou_symmetry():
    """IoU does not depend on argument order."""
    a = decode_corners(10, 10, 20, 8, 0.3)
    b = decode_corners(14, 12, 16, 10, -0.9)

    forward = rotated_iou(a, b)
    assert 0.0 < forward < 1.0
    assert rotated_iou(b, a) == pytest.approx(forward)


def test_rotated_iou_disjoint():
    """Boxes with no overlap have IoU 0."""
    a = decode_corners(0, 0, 10, 10, 0.4)
    b = decode_corners(100, 100, 10, 10, 1.1)
    assert rotated_iou(a, b) == 0.0


def test_rotated_iou_contained_diamond():
    """A 2x2 box rotated 45 degrees inside a 10x10 box: 4 / 100."""
    outer = decode_corners(0, 0, 10, 10, 0.0)
    inner = decode_corners(0, 0, 2, 2, math.pi / 4)

    assert rotated_iou(inner, outer) == pytest.approx(0.04)
    assert rotated_iou(outer, inner) == pytest.approx(0.04)


def test_rotated_iou_degenerate_boxes():
    """Zero-area boxes yield 0 instead of dividing by zero."""
    flat = decode_corners(0, 0, 0, 10, 0.0)
    normal = decode_corners(0, 0, 10, 10, 0.0)

    assert rotated_iou(flat, flat) == 0.0
    assert rotated_iou(flat, normal) == 0.0


def test_axis_aligned_iou():
    assert axis_aligned_iou((0, 0, 10, 10), (5, 0, 15, 10)) == pytest.approx(1 / 3)
    assert axis_aligned_iou((0, 0, 10, 10), (20, 20, 30, 30)) == 0.0
    assert axis_aligned_iou((0, 0, 0, 0), (0, 0, 0, 0)) == 0.0
