"""
Detection data transfer objects.

This module defines the box types produced by the decoders and the
per-frame DetectionResult returned by Detector.detect_frame(). They are
frozen, serializable containers with no behavior beyond data access.

Non-goals:
    - No rendering logic.
    - No file I/O.
    - No decoding or suppression (that belongs in postprocessor and nms).
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple, Union

from obb_detection.geometry import Point, polygon_area

Corners = Tuple[Point, Point, Point, Point]


@dataclass(frozen=True, slots=True)
class OrientedBox:
    """A candidate or retained rotated box.

    Attributes:
        corners: Four corners in display pixels, ordered top-left,
                 top-right, bottom-right, bottom-left of the unrotated box.
        confidence: Score of the winning class in [0.0, 1.0].
        class_index: Index of the winning class.
    """

    corners: Corners
    confidence: float
    class_index: int

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "class_index": self.class_index,
            "confidence": round(self.confidence, 4),
            "corners": [[round(p.x, 2), round(p.y, 2)] for p in self.corners],
        }

    @property
    def area(self) -> float:
        """Box area in square pixels."""
        return polygon_area(self.corners)


@dataclass(frozen=True, slots=True)
class AxisAlignedBox:
    """A box from the axis-aligned detection path.

    Attributes:
        x1: Left edge (display pixels).
        y1: Top edge (display pixels).
        x2: Right edge (display pixels).
        y2: Bottom edge (display pixels).
        confidence: Score of the winning class in [0.0, 1.0].
        class_index: Index of the winning class.
    """

    x1: float
    y1: float
    x2: float
    y2: float
    confidence: float
    class_index: int

    @property
    def corners(self) -> Corners:
        """Corners in the same order as OrientedBox.corners."""
        return (
            Point(self.x1, self.y1),
            Point(self.x2, self.y1),
            Point(self.x2, self.y2),
            Point(self.x1, self.y2),
        )

    @property
    def area(self) -> float:
        return max(0.0, self.x2 - self.x1) * max(0.0, self.y2 - self.y1)

    def to_dict(self) -> dict:
        return {
            "class_index": self.class_index,
            "confidence": round(self.confidence, 4),
            "corners": [[round(p.x, 2), round(p.y, 2)] for p in self.corners],
        }


Box = Union[OrientedBox, AxisAlignedBox]


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of one detection call.

    Attributes:
        boxes: Retained boxes, highest confidence first.
        class_counts: Retained boxes per class label. Every known label is
                      present, including those with zero boxes.
        total_count: Number of retained boxes.
        error: Message of the recoverable error that aborted the frame,
               or None for a completed frame.
    """

    boxes: Tuple[Box, ...] = ()
    class_counts: Dict[str, int] = field(default_factory=dict)
    total_count: int = 0
    error: Optional[str] = None

    @classmethod
    def empty(
        cls,
        class_names: Sequence[str],
        error: Optional[str] = None,
    ) -> "DetectionResult":
        """Build a result with no boxes and every label counted as zero."""
        return cls(
            boxes=(),
            class_counts={name: 0 for name in class_names},
            total_count=0,
            error=error,
        )

    @property
    def ok(self) -> bool:
        """True when the frame completed without a recoverable error."""
        return self.error is None

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        payload = {
            "total_count": self.total_count,
            "class_counts": dict(self.class_counts),
            "boxes": [box.to_dict() for box in self.boxes],
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload
