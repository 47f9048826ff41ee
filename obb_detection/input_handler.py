"""
Input handling for the detection pipeline.

Responsibility:
    Iterate over raw model outputs dumped by the external inference step.
    Provides a uniform iterator interface yielding (frame_id, tensor)
    tuples from a single .npy file, a single .npz archive (one frame per
    array, in stored order), or a directory of such files (sorted by name).

Non-goals:
    - No inference, camera or video access.
    - No detection or output writing.
    - No implicit fallback between source types.

Robustness:
    - Validates the source at initialization time.
    - Logs and skips unreadable files (never crashes the pipeline).
"""

import logging
import os
import zipfile
from pathlib import Path
from typing import Iterator, List, Tuple

import numpy as np

logger = logging.getLogger(__name__)

# Tensor dump extensions recognized by this handler
_TENSOR_EXTENSIONS = {".npy", ".npz"}


class InputHandler:
    """Uniform frame iterator over dumped output tensors.

    The source type is auto-detected at initialization:
        - .npy file  → one frame
        - .npz file  → one frame per stored array
        - Directory  → every .npy / .npz file inside (sorted)

    Usage:
        handler = InputHandler(source="dumps/")
        for frame_id, raw in handler:
            # post-process raw
    """

    def __init__(self, source: str) -> None:
        """Initialize the input handler and validate the source.

        Args:
            source: Path to a tensor file or a directory of tensor files.

        Raises:
            FileNotFoundError: If the source does not exist.
            ValueError: If the source holds no recognized tensor files.
        """
        source_str = str(source).strip()

        if os.path.isfile(source_str):
            ext = Path(source_str).suffix.lower()
            if ext not in _TENSOR_EXTENSIONS:
                raise ValueError(
                    f"Unrecognized file extension: '{ext}' for source '{source_str}'. "
                    f"Supported tensor files: {_TENSOR_EXTENSIONS}."
                )
            self._mode = "file"
            self._paths: List[str] = [source_str]
        elif os.path.isdir(source_str):
            self._mode = "directory"
            self._paths = sorted(
                str(p)
                for p in Path(source_str).iterdir()
                if p.suffix.lower() in _TENSOR_EXTENSIONS
            )
            if not self._paths:
                raise ValueError(
                    f"No tensor files found in directory: '{source_str}'. "
                    f"Supported extensions: {_TENSOR_EXTENSIONS}."
                )
            logger.info("Found %d tensor files in directory: %s", len(self._paths), source_str)
        else:
            raise FileNotFoundError(
                f"Input source not found: '{source_str}'. "
                f"Provide a valid tensor file or directory."
            )

        logger.info("InputHandler initialized: mode=%s, source=%s", self._mode, source_str)

    def __iter__(self) -> Iterator[Tuple[int, np.ndarray]]:
        """Iterate over frames from the configured source.

        Yields:
            Tuples of (frame_id, tensor) where frame_id is a 0-based,
            contiguous index over all readable frames.

        Unreadable files are logged and skipped (never raises mid-iteration).
        """
        frame_id = 0
        for path in self._paths:
            for tensor in self._load(path):
                yield frame_id, tensor
                frame_id += 1

    @staticmethod
    def _load(path: str) -> List[np.ndarray]:
        """Load all frames stored in one file, or none if it is unreadable."""
        try:
            if path.lower().endswith(".npz"):
                with np.load(path, allow_pickle=False) as archive:
                    return [archive[key] for key in archive.files]
            return [np.load(path, allow_pickle=False)]
        except (OSError, ValueError, EOFError, zipfile.BadZipFile) as e:
            logger.warning("Skipping unreadable tensor file %s: %s", path, e)
            return []
