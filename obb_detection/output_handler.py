"""
Output handling for the detection pipeline.

Responsibility:
    Route per-frame detection results to configured output sinks:
    a log summary, JSON, or CSV. Supports multiple orthogonal outputs
    simultaneously.

Non-goals:
    - No detection logic.
    - No input acquisition.
    - No drawing; renderers consume DetectionResult directly.
"""

import logging
from pathlib import Path
from typing import Dict, Set

from obb_detection.config import AppConfig, get_project_root
from obb_detection.detection import DetectionResult
from obb_detection.serializer import save_csv, save_json

logger = logging.getLogger(__name__)


class OutputHandler:
    """Routes detection results to configured output sinks.

    Supports orthogonal outputs - multiple modes can be active simultaneously:
        - 'log': Log the frame's total and non-zero class counts.
        - 'save_json': Accumulate results, write JSON on finalize.
        - 'save_csv': Accumulate results, write CSV on finalize.

    Usage:
        handler = OutputHandler(config)
        handler.process_frame(frame_id, result)
        ...
        handler.finalize()  # Flush any buffered output
    """

    def __init__(self, config: AppConfig) -> None:
        """Initialize the output handler.

        Args:
            config: Application configuration (output mode, paths, labels).
        """
        self._config = config

        # Parse output modes (comma-separated for multiple outputs)
        mode_str = config.output.mode
        self._modes: Set[str] = set(m.strip() for m in mode_str.split(','))

        # Buffer for serialization modes
        self._results_buffer: Dict[int, DetectionResult] = {}

        # Resolve output path
        save_path = Path(config.output.save_path)
        if not save_path.is_absolute():
            save_path = get_project_root() / save_path
        self._save_path = save_path

        # Create output directory if saving files
        if self._modes & {'save_json', 'save_csv'}:
            self._save_path.mkdir(parents=True, exist_ok=True)

        logger.info("OutputHandler initialized: modes=%s, save_path=%s",
                    self._modes, self._save_path)

    def process_frame(self, frame_id: int, result: DetectionResult) -> None:
        """Process a single frame's result through the output pipeline.

        Args:
            frame_id: Frame index.
            result: DetectionResult for this frame.
        """
        if 'log' in self._modes:
            self._log_summary(frame_id, result)

        # Buffer for JSON/CSV
        if 'save_json' in self._modes or 'save_csv' in self._modes:
            self._results_buffer[frame_id] = result

    @staticmethod
    def _log_summary(frame_id: int, result: DetectionResult) -> None:
        """Log the frame's total and each class with at least one box."""
        if not result.ok:
            logger.info("Frame %d: skipped (%s)", frame_id, result.error)
            return

        present = ", ".join(
            f"{name}: {count}" for name, count in result.class_counts.items() if count > 0
        )
        logger.info(
            "Frame %d: %d detections%s",
            frame_id, result.total_count, f" ({present})" if present else "",
        )

    def finalize(self) -> None:
        """Flush buffered output.

        Must be called after all frames have been processed.
        """
        if 'save_json' in self._modes and self._results_buffer:
            output_file = str(self._save_path / "detections.json")
            save_json(self._results_buffer, output_file)

        if 'save_csv' in self._modes and self._results_buffer:
            output_file = str(self._save_path / "detections.csv")
            save_csv(self._results_buffer, output_file, self._config.model.class_names)

        self._results_buffer.clear()
        logger.info("OutputHandler finalized.")
