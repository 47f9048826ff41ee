"""
Tests for rotated and axis-aligned non-maximum suppression.
"""

import numpy as np
import pytest

from obb_detection.detection import AxisAlignedBox, OrientedBox
from obb_detection.iou import axis_aligned_iou, rotated_iou
from obb_detection.nms import axis_aligned_nms, rotated_nms
from obb_detection.postprocessor import decode_corners


def _box(cx, cy, w, h, confidence, class_index=0, angle=0.0):
    return OrientedBox(
        corners=decode_corners(cx, cy, w, h, angle),
        confidence=confidence,
        class_index=class_index,
    )


def _random_boxes(seed=0, count=40):
    rng = np.random.default_rng(seed)
    return [
        _box(
            cx=float(rng.uniform(0, 100)),
            cy=float(rng.uniform(0, 100)),
            w=float(rng.uniform(5, 30)),
            h=float(rng.uniform(5, 30)),
            confidence=float(rng.uniform(0.3, 1.0)),
            class_index=int(rng.integers(0, 3)),
            angle=float(rng.uniform(-np.pi, np.pi)),
        )
        for _ in range(count)
    ]


def test_rotated_nms_empty():
    assert rotated_nms([], 0.5) == []


def test_rotated_nms_different_classes_never_suppress():
    """Identical boxes of different classes both survive."""
    a = _box(0, 0, 10, 10, 0.9, class_index=0)
    b = _box(0, 0, 10, 10, 0.8, class_index=1)

    assert rotated_nms([a, b], 0.1) == [a, b]


def test_rotated_nms_greedy_suppression():
    """IoU(0.9, 0.8) = 0.6 suppresses; IoU(0.9, 0.3) = 0.1 does not."""
    high = _box(5, 0, 10, 10, 0.9)
    mid = _box(7.5, 0, 10, 10, 0.8)
    low = _box(15 - 20 / 11, 0, 10, 10, 0.3)

    assert rotated_iou(high.corners, mid.corners) == pytest.approx(0.6)
    assert rotated_iou(high.corners, low.corners) == pytest.approx(0.1)

    kept = rotated_nms([low, mid, high], 0.5)

    assert [b.confidence for b in kept] == [0.9, 0.3]


def test_rotated_nms_tiny_threshold_suppresses_any_overlap():
    a = _box(0, 0, 10, 10, 0.9, angle=0.3)
    b = _box(9.5, 0, 10, 10, 0.5, angle=0.3)

    assert rotated_nms([a, b], 1e-9) == [a]
    assert rotated_nms([a, b], 0.5) == [a, b]


def test_rotated_nms_stable_on_ties():
    """Equal confidences keep input order."""
    a = _box(0, 0, 10, 10, 0.7)
    b = _box(100, 0, 10, 10, 0.7)
    c = _box(2, 0, 10, 10, 0.7)

    assert rotated_nms([a, b, c], 0.5) == [a, b]
    assert rotated_nms([c, b, a], 0.5) == [c, b]


def test_rotated_nms_idempotent():
    boxes = _random_boxes()
    for threshold in (1e-9, 0.1, 0.5, 1.0):
        once = rotated_nms(boxes, threshold)
        assert rotated_nms(once, threshold) == once


def test_rotated_nms_no_same_class_overlap_above_threshold():
    threshold = 0.2
    kept = rotated_nms(_random_boxes(seed=3, count=60), threshold)

    for i, a in enumerate(kept):
        for b in kept[i + 1:]:
            if a.class_index == b.class_index:
                assert rotated_iou(a.corners, b.corners) <= threshold


def test_rotated_nms_sorted_by_confidence():
    kept = rotated_nms(_random_boxes(seed=7), 0.3)
    confidences = [b.confidence for b in kept]
    assert confidences == sorted(confidences, reverse=True)


def test_rotated_nms_without_top_candidate_picks_next_best():
    """Dropping the best candidate makes the runner-up the first pick."""
    boxes = _random_boxes(seed=11)
    ranked = sorted(boxes, key=lambda b: b.confidence, reverse=True)

    rest = [b for b in boxes if b is not ranked[0]]

    assert rotated_nms(boxes, 0.3)[0] is ranked[0]
    assert rotated_nms(rest, 0.3)[0] is ranked[1]


def _aa(x1, y1, x2, y2, confidence, class_index=0):
    return AxisAlignedBox(x1, y1, x2, y2, confidence, class_index)


def test_axis_aligned_nms_suppresses_overlap():
    high = _aa(0, 0, 10, 10, 0.9)
    mid = _aa(2.5, 0, 12.5, 10, 0.8)   # IoU 0.6 with high
    far = _aa(50, 50, 60, 60, 0.7)

    kept = axis_aligned_nms([mid, far, high], iou_threshold=0.45)

    assert kept == [high, far]
    assert axis_aligned_iou((high.x1, high.y1, high.x2, high.y2),
                            (far.x1, far.y1, far.x2, far.y2)) == 0.0


def test_axis_aligned_nms_is_class_agnostic():
    a = _aa(0, 0, 10, 10, 0.9, class_index=0)
    b = _aa(0, 0, 10, 10, 0.8, class_index=1)

    assert axis_aligned_nms([a, b], iou_threshold=0.45) == [a]


def test_axis_aligned_nms_max_detections():
    boxes = [_aa(i * 20, 0, i * 20 + 10, 10, 0.5 + i * 0.1) for i in range(4)]

    kept = axis_aligned_nms(boxes, iou_threshold=0.45, max_detections=2)

    assert [b.confidence for b in kept] == pytest.approx([0.8, 0.7])


def test_axis_aligned_nms_empty():
    assert axis_aligned_nms([]) == []
