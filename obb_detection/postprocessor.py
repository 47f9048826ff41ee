"""
Box decoding for the detection pipeline.

Responsibility:
    Convert raw detection rows into candidate boxes in display space.
    Oriented rows are [cx, cy, w, h, class_scores..., angle]; axis-aligned
    rows are [cx, cy, w, h, class_scores...]. Each row's class is the
    argmax of its scores (first index on ties) and its confidence is
    that score. Rows at or below the confidence threshold are dropped.

Non-goals:
    - No suppression (see nms).
    - No class-name lookup or counting.

Hard-coded:
    - Coordinates and sizes are in model-input pixels and are scaled to
      display pixels before the rotation is applied.
    - The angle is in radians, positive from +x towards +y.
"""

import math
from typing import Iterator, Tuple

import numpy as np

from obb_detection.detection import AxisAlignedBox, Corners, OrientedBox
from obb_detection.geometry import Point
from obb_detection.layout import BOX_FIELDS

DEFAULT_CONFIDENCE_THRESHOLD = 0.35


def decode_corners(
    cx: float,
    cy: float,
    w: float,
    h: float,
    angle: float,
) -> Corners:
    """Return the four corners of a rotated box.

    The unrotated corners are taken in top-left, top-right, bottom-right,
    bottom-left order, rotated about the center by angle and translated
    to (cx, cy). The clipping inside test relies on this order.
    """
    cos_a = math.cos(angle)
    sin_a = math.sin(angle)
    half_w = w / 2.0
    half_h = h / 2.0

    offsets = (
        (-half_w, -half_h),
        (half_w, -half_h),
        (half_w, half_h),
        (-half_w, half_h),
    )

    return tuple(
        Point(cx + cos_a * dx - sin_a * dy, cy + sin_a * dx + cos_a * dy)
        for dx, dy in offsets
    )


def _class_scores(rows: np.ndarray, num_classes: int) -> Tuple[np.ndarray, np.ndarray]:
    scores = rows[:, BOX_FIELDS:BOX_FIELDS + num_classes]
    class_indices = np.argmax(scores, axis=1)
    confidences = scores[np.arange(rows.shape[0]), class_indices]
    return class_indices, confidences


def decode_frame(
    rows: np.ndarray,
    num_classes: int,
    scale_x: float = 1.0,
    scale_y: float = 1.0,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> Iterator[OrientedBox]:
    """Lazily decode oriented rows into OrientedBox candidates.

    Args:
        rows: Array of shape (N, 4 + num_classes + 1), see layout.to_rows().
        num_classes: Number of class score columns.
        scale_x: Display width / model input width.
        scale_y: Display height / model input height.
        confidence_threshold: Candidates must score strictly above this.

    Yields:
        OrientedBox candidates in row order.
    """
    if rows.shape[0] == 0:
        return

    class_indices, confidences = _class_scores(rows, num_classes)
    keep = np.flatnonzero(confidences > confidence_threshold)

    for i in keep:
        cx, cy, w, h = rows[i, :BOX_FIELDS]
        angle = rows[i, -1]
        corners = decode_corners(
            float(cx) * scale_x,
            float(cy) * scale_y,
            float(w) * scale_x,
            float(h) * scale_y,
            float(angle),
        )
        yield OrientedBox(
            corners=corners,
            confidence=float(confidences[i]),
            class_index=int(class_indices[i]),
        )


def decode_axis_aligned(
    rows: np.ndarray,
    num_classes: int,
    scale_x: float = 1.0,
    scale_y: float = 1.0,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> Iterator[AxisAlignedBox]:
    """Lazily decode axis-aligned rows into AxisAlignedBox candidates.

    Rows have shape (N, 4 + num_classes). A single-class model yields
    class index 0 for every box.
    """
    if rows.shape[0] == 0:
        return

    class_indices, confidences = _class_scores(rows, num_classes)
    keep = np.flatnonzero(confidences > confidence_threshold)

    for i in keep:
        cx, cy, w, h = (float(v) for v in rows[i, :BOX_FIELDS])
        x1 = (cx - w / 2.0) * scale_x
        y1 = (cy - h / 2.0) * scale_y
        yield AxisAlignedBox(
            x1=x1,
            y1=y1,
            x2=x1 + w * scale_x,
            y2=y1 + h * scale_y,
            confidence=float(confidences[i]),
            class_index=int(class_indices[i]),
        )
