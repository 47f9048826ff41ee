"""
Detector — turns one raw output buffer into a DetectionResult.

Public contract:
    Detector.detect_frame(raw, class_names, confidence_threshold,
                          iou_threshold, scale_x, scale_y, layout)
        -> DetectionResult

Two variants share the layout handling, confidence filter and per-class
tally, and differ only in decoding and suppression:
    - OrientedDetector: [cx, cy, w, h, scores..., angle] rows, rotated
      boxes, polygon-clipping NMS per class.
    - AxisAlignedDetector: [cx, cy, w, h, scores...] rows, upright boxes,
      class-agnostic NMS delegated to OpenCV.

Constraints:
    - Every call receives its full configuration as arguments; detectors
      hold no per-frame state and may be reused across frames.
    - A call runs to completion; there is no cancellation hook.

Non-goals:
    - No inference, tensor acquisition or disposal.
    - No drawing.
"""

import abc
import logging
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Union

import numpy as np

from obb_detection.config import DetectionConfig
from obb_detection.detection import AxisAlignedBox, Box, DetectionResult, OrientedBox
from obb_detection.layout import (
    LayoutStrategy,
    as_array,
    infer_num_classes,
    row_stride,
    to_rows,
)
from obb_detection.nms import (
    DEFAULT_MAX_DETECTIONS,
    axis_aligned_nms,
    rotated_nms,
)
from obb_detection.postprocessor import decode_axis_aligned, decode_frame

logger = logging.getLogger(__name__)


class Detector(abc.ABC):
    """Shared orchestration: layout → decode/filter → NMS → tally."""

    #: Whether rows carry a trailing rotation angle.
    oriented: bool = True

    @abc.abstractmethod
    def decode(
        self,
        rows: np.ndarray,
        num_classes: int,
        scale_x: float,
        scale_y: float,
        confidence_threshold: float,
    ) -> Iterator[Box]:
        """Yield candidate boxes scoring above the threshold."""

    @abc.abstractmethod
    def suppress(self, candidates: Iterable[Box], iou_threshold: float) -> List[Box]:
        """Return the candidates surviving non-maximum suppression."""

    def callback_count(self, result: DetectionResult) -> int:
        """Count reported to the count-change callback."""
        return result.total_count

    def detect_frame(
        self,
        raw: Union[np.ndarray, Sequence[float]],
        class_names: Sequence[str],
        confidence_threshold: float,
        iou_threshold: float,
        scale_x: float = 1.0,
        scale_y: float = 1.0,
        layout: Union[LayoutStrategy, str] = LayoutStrategy.AUTO,
    ) -> DetectionResult:
        """Run the full post-processing pipeline on one output buffer.

        Args:
            raw: Raw model output for one frame (flat or shaped).
            class_names: Ordered class labels. When empty, the class count
                         is inferred from the buffer shape and nothing is
                         tallied per label.
            confidence_threshold: Candidates must score strictly above this.
            iou_threshold: Suppression threshold in (0, 1].
            scale_x: Display width / model input width.
            scale_y: Display height / model input height.
            layout: How detections are laid out in raw.

        Returns:
            The retained boxes (highest confidence first), per-label counts
            and total count. Zero detections give an empty result.

        Raises:
            MalformedOutputError: If raw is ragged or matches no supported layout.
            ValueError: If a threshold is out of range.
        """
        _check_thresholds(confidence_threshold, iou_threshold)

        raw = as_array(raw)
        num_classes = len(class_names) or infer_num_classes(raw.shape, self.oriented, layout)
        rows = to_rows(raw, row_stride(num_classes, self.oriented), layout)

        candidates = list(
            self.decode(rows, num_classes, scale_x, scale_y, confidence_threshold)
        )
        boxes = self.suppress(candidates, iou_threshold)
        logger.debug(
            "%s: %d rows, %d candidates, %d after NMS",
            type(self).__name__, rows.shape[0], len(candidates), len(boxes),
        )

        return DetectionResult(
            boxes=tuple(boxes),
            class_counts=tally(boxes, class_names),
            total_count=len(boxes),
        )


class OrientedDetector(Detector):
    """Rotated-box detector for YOLO-OBB style output."""

    oriented = True

    def decode(self, rows, num_classes, scale_x, scale_y, confidence_threshold):
        return decode_frame(rows, num_classes, scale_x, scale_y, confidence_threshold)

    def suppress(self, candidates: Iterable[OrientedBox], iou_threshold: float) -> List[OrientedBox]:
        return rotated_nms(candidates, iou_threshold)


class AxisAlignedDetector(Detector):
    """Upright-box detector for YOLO detection output.

    Args:
        max_detections: Cap on boxes kept by NMS.
        counted_class_index: Class whose retained boxes are reported to
                             the count callback (0 is 'person' in COCO).
    """

    oriented = False

    def __init__(
        self,
        max_detections: int = DEFAULT_MAX_DETECTIONS,
        counted_class_index: int = 0,
    ) -> None:
        self.max_detections = max_detections
        self.counted_class_index = counted_class_index

    def decode(self, rows, num_classes, scale_x, scale_y, confidence_threshold):
        return decode_axis_aligned(rows, num_classes, scale_x, scale_y, confidence_threshold)

    def suppress(self, candidates: Iterable[AxisAlignedBox], iou_threshold: float) -> List[AxisAlignedBox]:
        return axis_aligned_nms(
            candidates,
            iou_threshold=iou_threshold,
            max_detections=self.max_detections,
        )

    def callback_count(self, result: DetectionResult) -> int:
        return sum(1 for b in result.boxes if b.class_index == self.counted_class_index)


def tally(boxes: Iterable[Box], class_names: Sequence[str]) -> Dict[str, int]:
    """Count boxes per class label, starting every known label at zero.

    Boxes whose class index has no label are not counted.
    """
    counts = {name: 0 for name in class_names}
    unlabeled = 0

    for box in boxes:
        if 0 <= box.class_index < len(class_names):
            counts[class_names[box.class_index]] += 1
        else:
            unlabeled += 1

    if unlabeled:
        logger.debug("%d boxes have no class label and were not counted.", unlabeled)
    return counts


def create_detector(config: Optional[DetectionConfig] = None) -> Detector:
    """Build the detector variant selected by config.mode."""
    config = config or DetectionConfig()

    if config.mode == "axis_aligned":
        return AxisAlignedDetector(
            max_detections=config.max_detections,
            counted_class_index=config.counted_class_index,
        )
    if config.mode == "oriented":
        return OrientedDetector()

    raise ValueError(f"Unknown detection mode: '{config.mode}'.")


def detect_frame(
    raw: Union[np.ndarray, Sequence[float]],
    class_names: Sequence[str],
    confidence_threshold: float,
    iou_threshold: float,
    scale_x: float = 1.0,
    scale_y: float = 1.0,
    layout: Union[LayoutStrategy, str] = LayoutStrategy.AUTO,
) -> DetectionResult:
    """Oriented detection on one buffer. See Detector.detect_frame()."""
    return OrientedDetector().detect_frame(
        raw,
        class_names,
        confidence_threshold,
        iou_threshold,
        scale_x=scale_x,
        scale_y=scale_y,
        layout=layout,
    )


def _check_thresholds(confidence_threshold: float, iou_threshold: float) -> None:
    if not (0.0 <= confidence_threshold < 1.0):
        raise ValueError(
            f"confidence_threshold must be in [0.0, 1.0), got {confidence_threshold}."
        )
    if not (0.0 < iou_threshold <= 1.0):
        raise ValueError(
            f"iou_threshold must be in (0.0, 1.0], got {iou_threshold}."
        )
