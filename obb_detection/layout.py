"""
Tensor layout selection for raw detection output.

Responsibility:
    Turn the raw output buffer of the external inference step into a
    2D float array with one detection per row, i.e. shape (N, stride).

Supported layouts:
    - ROWS:    [N][stride]  (one detection per row)
    - COLUMNS: [stride][N]  (one attribute per row, the exported YOLO
                             convention, e.g. (1, 20, 21504))
    - AUTO:    choose from the shape. A square ambiguity (N == stride)
               resolves to COLUMNS; a flat 1-D buffer is read row-major.

Leading singleton axes (batch) are squeezed before inspection.
"""

import enum
from typing import Sequence, Union

import numpy as np

BOX_FIELDS = 4  # cx, cy, w, h


class MalformedOutputError(ValueError):
    """Raised when a buffer does not match any supported layout."""


class LayoutStrategy(str, enum.Enum):
    """How detections are laid out in the raw output buffer."""

    AUTO = "auto"
    ROWS = "rows"
    COLUMNS = "columns"


def row_stride(num_classes: int, oriented: bool = True) -> int:
    """Number of values per detection: box, class scores and optional angle."""
    return BOX_FIELDS + num_classes + (1 if oriented else 0)


def as_array(buffer: Union[np.ndarray, Sequence[float]]) -> np.ndarray:
    """Convert a raw buffer to float64, rejecting ragged or non-numeric input."""
    try:
        return np.asarray(buffer, dtype=np.float64)
    except (ValueError, TypeError) as e:
        raise MalformedOutputError(f"Output buffer is not a numeric tensor: {e}") from e


def infer_num_classes(
    shape: Sequence[int],
    oriented: bool = True,
    strategy: Union[LayoutStrategy, str] = LayoutStrategy.AUTO,
) -> int:
    """Derive the class count from a shaped output, e.g. (1, stride, N).

    The attribute axis is the last one for ROWS and the second to last
    for COLUMNS and AUTO. A flat buffer carries no stride, so it cannot
    be decoded without class names.
    """
    strategy = LayoutStrategy(strategy)
    dims = [int(d) for d in shape]
    while len(dims) > 2 and dims[0] == 1:
        dims = dims[1:]

    if len(dims) != 2:
        raise MalformedOutputError(
            f"Cannot infer class count from shape {tuple(shape)}; "
            f"flat or high-rank buffers need class names."
        )

    attributes = dims[1] if strategy is LayoutStrategy.ROWS else dims[0]
    num_classes = attributes - BOX_FIELDS - (1 if oriented else 0)
    if num_classes < 1:
        raise MalformedOutputError(
            f"Output shape {tuple(shape)} leaves no class score columns."
        )
    return num_classes


def _squeeze_leading(array: np.ndarray) -> np.ndarray:
    while array.ndim > 2 and array.shape[0] == 1:
        array = array[0]
    return array


def to_rows(
    buffer: Union[np.ndarray, Sequence[float]],
    stride: int,
    strategy: Union[LayoutStrategy, str] = LayoutStrategy.AUTO,
) -> np.ndarray:
    """Return the buffer as a float64 array of shape (N, stride).

    Args:
        buffer: Raw model output, flat or shaped.
        stride: Values per detection (see row_stride()).
        strategy: Layout to apply, or AUTO to detect from the shape.

    Returns:
        A (N, stride) array. N may be zero.

    Raises:
        MalformedOutputError: If the buffer is ragged, or cannot be read
                              with the requested (or any) layout.
    """
    strategy = LayoutStrategy(strategy)
    array = as_array(buffer)

    if array.size == 0:
        return np.empty((0, stride), dtype=np.float64)

    array = _squeeze_leading(array)

    if array.ndim == 1:
        return _flat_to_rows(array, stride, strategy)

    if array.ndim != 2:
        raise MalformedOutputError(
            f"Expected a 1-D or 2-D detection buffer (after squeezing batch axes), "
            f"got shape {array.shape}."
        )

    rows_ok = array.shape[1] == stride
    cols_ok = array.shape[0] == stride

    if strategy is LayoutStrategy.AUTO:
        if cols_ok:
            strategy = LayoutStrategy.COLUMNS
        elif rows_ok:
            strategy = LayoutStrategy.ROWS
        else:
            raise MalformedOutputError(
                f"Output shape {array.shape} matches neither [N][{stride}] "
                f"nor [{stride}][N]."
            )

    if strategy is LayoutStrategy.ROWS:
        if not rows_ok:
            raise MalformedOutputError(
                f"Row layout expects shape (N, {stride}), got {array.shape}."
            )
        return array

    if not cols_ok:
        raise MalformedOutputError(
            f"Column layout expects shape ({stride}, N), got {array.shape}."
        )
    return array.T


def _flat_to_rows(
    array: np.ndarray,
    stride: int,
    strategy: LayoutStrategy,
) -> np.ndarray:
    if array.size % stride != 0:
        raise MalformedOutputError(
            f"Flat buffer of {array.size} values is not a multiple of the "
            f"detection stride {stride}."
        )

    if strategy is LayoutStrategy.COLUMNS:
        return array.reshape(stride, -1).T
    return array.reshape(-1, stride)

