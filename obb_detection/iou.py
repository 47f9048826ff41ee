"""
Intersection-over-union for oriented and axis-aligned boxes.

The rotated IoU clips one box polygon against the other with the
geometry kernel and divides the areas. Zero-area inputs are recovered
locally (IoU 0.0) and never raised.
"""

from typing import Sequence, Tuple

from obb_detection.geometry import Point, clip_polygon, polygon_area


def rotated_iou(corners_a: Sequence[Point], corners_b: Sequence[Point]) -> float:
    """Compute the IoU of two convex box polygons.

    Args:
        corners_a: Corners of the first box, in decoder order.
        corners_b: Corners of the second box, in decoder order.

    Returns:
        IoU in [0.0, 1.0]. 0.0 when the boxes do not overlap or when the
        union area is zero.
    """
    intersection = clip_polygon(corners_a, corners_b)
    if not intersection:
        return 0.0

    inter_area = polygon_area(intersection)
    union = polygon_area(corners_a) + polygon_area(corners_b) - inter_area
    if union <= 0:
        return 0.0

    return max(0.0, min(1.0, inter_area / union))


def axis_aligned_iou(
    box_a: Tuple[float, float, float, float],
    box_b: Tuple[float, float, float, float],
) -> float:
    """IoU of two (x1, y1, x2, y2) boxes."""
    ax1, ay1, ax2, ay2 = box_a
    bx1, by1, bx2, by2 = box_b

    inter_w = min(ax2, bx2) - max(ax1, bx1)
    inter_h = min(ay2, by2) - max(ay1, by1)
    if inter_w <= 0 or inter_h <= 0:
        return 0.0

    inter_area = inter_w * inter_h
    union = (ax2 - ax1) * (ay2 - ay1) + (bx2 - bx1) * (by2 - by1) - inter_area
    if union <= 0:
        return 0.0
    return inter_area / union
