"""
DetectionSession — the per-frame entry point used by scheduling loops.

Responsibility:
    Bind a frozen AppConfig and a Detector variant, run one frame at a
    time, isolate recoverable per-frame failures, and notify an optional
    count-change callback after each completed frame.

Constraints:
    - The session never mutates its config. process() accepts a config
      for that call only; with_config() returns a new session.
    - A malformed buffer aborts only its own frame: the result is empty
      and carries the error message, and the callback is not invoked.
    - Single-threaded; each process() call runs to completion.
"""

import logging
from typing import Callable, Optional, Sequence, Union

import numpy as np

from obb_detection.config import AppConfig, load_config
from obb_detection.detection import DetectionResult
from obb_detection.detector import Detector, create_detector
from obb_detection.layout import MalformedOutputError

logger = logging.getLogger(__name__)

CountCallback = Callable[[int], None]


class DetectionSession:
    """Runs the detector on successive frames with an explicit config.

    Usage:
        session = DetectionSession(config, on_count_change=print)
        result = session.process(raw_output)
        if not result.ok:
            ...  # frame skipped, loop continues

    Args:
        config: Application configuration. If None, safe defaults are used.
        detector: Detector to use. Defaults to the variant selected by
                  config.detection.mode.
        on_count_change: Called with the frame's count after every
                         completed frame.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        detector: Optional[Detector] = None,
        on_count_change: Optional[CountCallback] = None,
    ) -> None:
        if config is None:
            config = load_config()

        self._config = config
        self._detector = detector or create_detector(config.detection)
        self._on_count_change = on_count_change

        logger.info(
            "DetectionSession ready (detector=%s, classes=%d, conf=%.2f, iou=%g)",
            type(self._detector).__name__,
            len(config.model.class_names),
            config.detection.confidence_threshold,
            config.detection.effective_iou_threshold,
        )

    @property
    def config(self) -> AppConfig:
        """Return the active configuration (read-only)."""
        return self._config

    @property
    def detector(self) -> Detector:
        return self._detector

    def with_config(self, config: AppConfig) -> "DetectionSession":
        """Return a new session using config, keeping the callback."""
        detector = None
        if config.detection == self._config.detection:
            detector = self._detector
        return DetectionSession(config, detector=detector, on_count_change=self._on_count_change)

    def process(
        self,
        raw: Union[np.ndarray, Sequence[float]],
        config: Optional[AppConfig] = None,
    ) -> DetectionResult:
        """Post-process one frame of raw model output.

        Args:
            raw: Raw output buffer of the inference step for this frame.
            config: Configuration for this call only. Defaults to the
                    session's config. The session's detector is kept, so
                    switching detection.mode needs with_config().

        Returns:
            The frame's DetectionResult. On a malformed buffer, an empty
            result whose error field holds the message.
        """
        config = config or self._config
        scale_x, scale_y = config.scale

        try:
            result = self._detector.detect_frame(
                raw,
                config.model.class_names,
                config.detection.confidence_threshold,
                config.detection.effective_iou_threshold,
                scale_x=scale_x,
                scale_y=scale_y,
                layout=config.detection.layout,
            )
        except MalformedOutputError as e:
            logger.warning("Skipping frame with malformed output: %s", e)
            return DetectionResult.empty(config.model.class_names, error=str(e))

        if self._on_count_change is not None:
            self._on_count_change(self._detector.callback_count(result))

        return result
