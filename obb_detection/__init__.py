"""
OBB Detection — post-processing for oriented-bounding-box detectors.

Public API:
    - DetectionSession: Per-frame entry point with error isolation.
    - Detector, OrientedDetector, AxisAlignedDetector: Detector variants.
    - detect_frame: One-shot oriented detection on a raw output buffer.
    - DetectionResult, OrientedBox, AxisAlignedBox: Result types.
    - LayoutStrategy, MalformedOutputError: Raw tensor layout handling.

All other modules in this package are internal implementation details
and should not be imported directly by consumers.

Usage:
    from obb_detection import DetectionSession

    session = DetectionSession(on_count_change=print)
    result = session.process(raw_output)
"""

from obb_detection.detection import AxisAlignedBox, DetectionResult, OrientedBox
from obb_detection.detector import (
    AxisAlignedDetector,
    Detector,
    OrientedDetector,
    detect_frame,
)
from obb_detection.layout import LayoutStrategy, MalformedOutputError
from obb_detection.session import DetectionSession

__all__ = [
    "AxisAlignedBox",
    "AxisAlignedDetector",
    "DetectionResult",
    "DetectionSession",
    "Detector",
    "LayoutStrategy",
    "MalformedOutputError",
    "OrientedBox",
    "OrientedDetector",
    "detect_frame",
]
