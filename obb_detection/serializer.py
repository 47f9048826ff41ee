"""
Serialization for the detection pipeline.

Responsibility:
    Export detection results to structured file formats (JSON, CSV)
    for downstream consumption or offline analysis.

Non-goals:
    - No rendering, display, or detection logic.
    - No streaming output — writes complete files on finalize.
"""

import csv
import json
import logging
from pathlib import Path
from typing import Dict, Sequence

from obb_detection.detection import DetectionResult

logger = logging.getLogger(__name__)


def save_json(
    results_by_frame: Dict[int, DetectionResult],
    output_path: str,
) -> None:
    """Export all detection results to a JSON file.

    Output schema:
        {
            "frames": [
                {
                    "frame_id": 0,
                    "total_count": 2,
                    "class_counts": {"plane": 1, "ship": 1, ...},
                    "boxes": [
                        {"class_index": 0, "confidence": 0.91,
                         "corners": [[x, y], [x, y], [x, y], [x, y]]}
                    ]
                }
            ],
            "total_frames": N,
            "total_detections": M
        }

    Args:
        results_by_frame: Mapping of frame_id → DetectionResult.
        output_path: Path to the output JSON file.

    Raises:
        OSError: If the output path is not writable.
    """
    _ensure_parent_dir(output_path)

    frames = []
    total_detections = 0

    for frame_id in sorted(results_by_frame.keys()):
        result = results_by_frame[frame_id]
        total_detections += result.total_count
        frames.append({"frame_id": frame_id, **result.to_dict()})

    payload = {
        "frames": frames,
        "total_frames": len(frames),
        "total_detections": total_detections,
    }

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)

    logger.info(
        "JSON output saved: %s (%d frames, %d detections)",
        output_path, len(frames), total_detections,
    )


def save_csv(
    results_by_frame: Dict[int, DetectionResult],
    output_path: str,
    class_names: Sequence[str] = (),
) -> None:
    """Export all retained boxes to a CSV file, one row per box.

    Columns: frame_id, class_index, class_name, confidence, x1, y1, ..., x4, y4
    Corner columns follow the box corner order. class_name is empty for
    indices without a label.

    Args:
        results_by_frame: Mapping of frame_id → DetectionResult.
        output_path: Path to the output CSV file.
        class_names: Ordered class labels.

    Raises:
        OSError: If the output path is not writable.
    """
    _ensure_parent_dir(output_path)

    corner_fields = [f"{axis}{i}" for i in range(1, 5) for axis in ("x", "y")]
    fieldnames = ["frame_id", "class_index", "class_name", "confidence", *corner_fields]

    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()

        total = 0
        for frame_id in sorted(results_by_frame.keys()):
            for box in results_by_frame[frame_id].boxes:
                idx = box.class_index
                row = {
                    "frame_id": frame_id,
                    "class_index": idx,
                    "class_name": class_names[idx] if 0 <= idx < len(class_names) else "",
                    "confidence": round(box.confidence, 4),
                }
                for i, p in enumerate(box.corners, start=1):
                    row[f"x{i}"] = round(p.x, 2)
                    row[f"y{i}"] = round(p.y, 2)
                writer.writerow(row)
                total += 1

    logger.info("CSV output saved: %s (%d rows)", output_path, total)


def _ensure_parent_dir(path: str) -> None:
    """Create parent directories if they don't exist."""
    parent = Path(path).parent
    parent.mkdir(parents=True, exist_ok=True)
