"""
Non-maximum suppression.

Responsibility:
    - Rotated NMS: greedy, class-aware suppression of OrientedBox
      candidates using the polygon-clipping IoU.
    - Axis-aligned NMS: class-agnostic suppression delegated to
      cv2.dnn.NMSBoxes.

Ordering:
    Candidates are visited by confidence, highest first. Equal confidences
    keep their input order (stable sort). The returned list is in
    acceptance order.
"""

import logging
from typing import Iterable, List

import cv2
import numpy as np

from obb_detection.detection import AxisAlignedBox, OrientedBox
from obb_detection.iou import rotated_iou

logger = logging.getLogger(__name__)

# Dense aerial scenes overlap heavily between distinct objects; the
# rotated default suppresses any same-class overlap at all.
DEFAULT_ROTATED_IOU_THRESHOLD = 1e-9
DEFAULT_AXIS_ALIGNED_IOU_THRESHOLD = 0.45
DEFAULT_MAX_DETECTIONS = 500


def rotated_nms(
    candidates: Iterable[OrientedBox],
    iou_threshold: float = DEFAULT_ROTATED_IOU_THRESHOLD,
) -> List[OrientedBox]:
    """Greedy per-class suppression of rotated boxes.

    A candidate is dropped when a previously accepted box of the same
    class overlaps it with IoU strictly greater than iou_threshold. Boxes
    of different classes never suppress each other.

    Args:
        candidates: Decoded candidate boxes, in any order.
        iou_threshold: Suppression threshold in (0, 1].

    Returns:
        Retained boxes, highest confidence first.
    """
    remaining = sorted(candidates, key=lambda b: b.confidence, reverse=True)
    keep: List[OrientedBox] = []

    while remaining:
        best = remaining.pop(0)
        keep.append(best)
        remaining = [
            box for box in remaining
            if box.class_index != best.class_index
            or rotated_iou(best.corners, box.corners) <= iou_threshold
        ]

    return keep


def axis_aligned_nms(
    candidates: Iterable[AxisAlignedBox],
    iou_threshold: float = DEFAULT_AXIS_ALIGNED_IOU_THRESHOLD,
    score_threshold: float = 0.0,
    max_detections: int = DEFAULT_MAX_DETECTIONS,
) -> List[AxisAlignedBox]:
    """Class-agnostic suppression of axis-aligned boxes via OpenCV.

    Args:
        candidates: Decoded candidate boxes.
        iou_threshold: Suppression threshold in (0, 1].
        score_threshold: Boxes scoring below this are discarded.
        max_detections: Upper bound on the number of retained boxes.

    Returns:
        Retained boxes, highest confidence first.
    """
    boxes = list(candidates)
    if not boxes:
        return []

    rects = [[b.x1, b.y1, b.x2 - b.x1, b.y2 - b.y1] for b in boxes]
    scores = [b.confidence for b in boxes]

    indices = cv2.dnn.NMSBoxes(
        rects,
        scores,
        score_threshold,
        iou_threshold,
        1.0,
        max_detections,
    )
    order = np.asarray(indices, dtype=np.int64).reshape(-1)

    return [boxes[i] for i in order]
