"""
Tests for the detection session.
"""

from dataclasses import replace

import numpy as np
import pytest

from obb_detection.config import AppConfig, DetectionConfig, ModelConfig
from obb_detection.detector import AxisAlignedDetector, OrientedDetector
from obb_detection.session import DetectionSession


def _config(**detection):
    return AppConfig(
        model=ModelConfig(class_names=("plane", "ship"), image_size=(100, 100)),
        detection=DetectionConfig(**detection),
    )


def _raw(*detections):
    """(1, 4 + 2 + 1, N) tensor from (cx, cy, w, h, class_index, confidence)."""
    rows = []
    for cx, cy, w, h, cls, conf in detections:
        scores = [0.0, 0.0]
        scores[cls] = conf
        rows.append([cx, cy, w, h, *scores, 0.0])
    return np.array(rows).T[np.newaxis, ...]


def test_process_notifies_count_per_frame():
    counts = []
    session = DetectionSession(_config(), on_count_change=counts.append)

    session.process(_raw((10, 10, 4, 4, 0, 0.9), (50, 50, 4, 4, 1, 0.8)))
    session.process(_raw())

    assert counts == [2, 0]


def test_malformed_frame_is_isolated():
    """A bad frame yields an empty result; the next frame is unaffected."""
    counts = []
    session = DetectionSession(_config(), on_count_change=counts.append)

    bad = session.process(np.zeros((3, 11)))

    assert not bad.ok
    assert "neither" in bad.error
    assert bad.boxes == ()
    assert bad.class_counts == {"plane": 0, "ship": 0}
    assert counts == []

    good = session.process(_raw((10, 10, 4, 4, 0, 0.9)))
    assert good.ok
    assert good.total_count == 1
    assert counts == [1]


def test_per_call_config_does_not_mutate_session():
    session = DetectionSession(_config(confidence_threshold=0.35))
    raw = _raw((10, 10, 4, 4, 0, 0.5))

    strict = replace(session.config, detection=replace(session.config.detection, confidence_threshold=0.6))

    assert session.process(raw, config=strict).total_count == 0
    assert session.process(raw).total_count == 1
    assert session.config.detection.confidence_threshold == 0.35


def test_display_size_scales_boxes():
    session = DetectionSession(_config(display_size=(200, 50)))

    result = session.process(_raw((10, 10, 4, 4, 0, 0.9)))

    tl = result.boxes[0].corners[0]
    assert (tl.x, tl.y) == pytest.approx((16.0, 4.0))


def test_with_config_switches_detector_and_keeps_callback():
    counts = []
    session = DetectionSession(_config(), on_count_change=counts.append)
    assert isinstance(session.detector, OrientedDetector)

    axis = session.with_config(_config(mode="axis_aligned", counted_class_index=1))

    assert isinstance(axis.detector, AxisAlignedDetector)
    assert session.config.detection.mode == "oriented"

    rows = np.array([[10, 10, 4, 4, 0.9, 0.0], [50, 50, 4, 4, 0.0, 0.8]])
    axis.process(rows)
    assert counts == [1]


def test_with_same_detection_config_reuses_detector():
    session = DetectionSession(_config())
    other = session.with_config(replace(session.config, model=ModelConfig(class_names=("a", "b"))))
    assert other.detector is session.detector


def test_ragged_frame_is_isolated():
    counts = []
    session = DetectionSession(_config(), on_count_change=counts.append)

    result = session.process([[1, 2, 3, 4, 0.9, 0.1, 0.0], [1, 2, 3]])

    assert not result.ok
    assert "not a numeric tensor" in result.error
    assert counts == []


def test_axis_aligned_default_iou_keeps_partial_overlap():
    """Unset IoU resolves to 0.45 in axis-aligned mode, so IoU ~0.18 survives."""
    config = _config(mode="axis_aligned")
    session = DetectionSession(config)
    rows = np.array([
        [50, 50, 20, 20, 0.9, 0.0],
        [64, 50, 20, 20, 0.8, 0.0],
    ])

    result = session.process(rows)

    assert config.detection.effective_iou_threshold == 0.45
    assert result.total_count == 2


def test_oriented_default_iou_suppresses_any_overlap():
    session = DetectionSession(_config())

    result = session.process(_raw((50, 50, 20, 20, 0, 0.9), (64, 50, 20, 20, 0, 0.8)))

    assert session.config.detection.effective_iou_threshold == 1e-9
    assert result.total_count == 1
