"""
Configuration management for the OBB detection pipeline.

Provides a layered configuration system with the following precedence
(highest to lowest):

    CLI arguments > Environment variables > YAML config file > Defaults

Design constraints:
    - The system MUST run with zero configuration (safe defaults only).
    - Missing or invalid values fail early and loudly.
    - Every config object is frozen. A detection call receives the whole
      config explicitly; changing a threshold means building a new
      AppConfig (dataclasses.replace), never mutating one in place.
    - No detection logic, I/O beyond config files, or inference belongs here.

Non-goals:
    - No dynamic reloading.
    - No database-backed or remote configuration.
"""

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional, Tuple

import yaml

from obb_detection.nms import (
    DEFAULT_AXIS_ALIGNED_IOU_THRESHOLD,
    DEFAULT_ROTATED_IOU_THRESHOLD,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Project root resolution
# ---------------------------------------------------------------------------
# Resolved relative to this file's location: obb_detection/config.py → repo root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def get_project_root() -> Path:
    """Return the resolved project root directory."""
    return _PROJECT_ROOT


# DOTA-v1 labels, used until model metadata says otherwise
DOTA_CLASS_NAMES: Tuple[str, ...] = (
    "plane", "ship", "storage tank", "baseball diamond", "tennis court",
    "basketball court", "ground track field", "harbor", "bridge", "large vehicle",
    "small vehicle", "helicopter", "roundabout", "soccer ball field", "swimming pool",
)


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelConfig:
    """Properties of the exported model whose output is post-processed.

    Attributes:
        class_names: Ordered class labels; index i labels score column i.
        image_size: Model input (width, height) in pixels.
        metadata_path: Optional exported metadata.yaml providing 'names'
                       and 'imgsz' (relative to project root).
    """

    class_names: Tuple[str, ...] = DOTA_CLASS_NAMES
    image_size: Tuple[int, int] = (1024, 1024)
    metadata_path: Optional[str] = None


@dataclass(frozen=True)
class DetectionConfig:
    """Detection thresholds and decoding options.

    Attributes:
        mode: 'oriented' (rotated boxes, polygon NMS) or 'axis_aligned'.
        confidence_threshold: Candidates must score strictly above this.
        iou_threshold: Same-class boxes overlapping an accepted box by more
                       than this are suppressed. None selects the mode's
                       default: 1e-9 for oriented, 0.45 for axis-aligned.
        layout: Raw tensor layout: 'auto', 'rows' or 'columns'.
        display_size: Target (width, height) for box coordinates. None
                      keeps model input coordinates.
        counted_class_index: Class reported to the count callback in
                             axis-aligned mode.
        max_detections: Cap on retained boxes in axis-aligned mode.
    """

    mode: str = "oriented"
    confidence_threshold: float = 0.35
    iou_threshold: Optional[float] = None
    layout: str = "auto"
    display_size: Optional[Tuple[int, int]] = None
    counted_class_index: int = 0
    max_detections: int = 500

    @property
    def effective_iou_threshold(self) -> float:
        """iou_threshold, or the default for the mode when it is unset."""
        if self.iou_threshold is not None:
            return self.iou_threshold
        if self.mode == "axis_aligned":
            return DEFAULT_AXIS_ALIGNED_IOU_THRESHOLD
        return DEFAULT_ROTATED_IOU_THRESHOLD


@dataclass(frozen=True)
class InputConfig:
    """Input source configuration.

    Attributes:
        source: Path to a tensor file (.npy / .npz) or a directory of them.
    """

    source: str = "dumps/"


@dataclass(frozen=True)
class OutputConfig:
    """Output behavior configuration.

    Attributes:
        mode: Output mode(s). Supports multiple comma-separated values:
              'log', 'save_json', 'save_csv'.
              Example: "log,save_json"
        save_path: Directory where output artifacts are written.
    """

    mode: str = "log"
    save_path: str = "output/"


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration.

    Aggregates all sub-configurations into a single, frozen object.
    """

    model: ModelConfig = field(default_factory=ModelConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    input: InputConfig = field(default_factory=InputConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    @property
    def scale(self) -> Tuple[float, float]:
        """(scale_x, scale_y) from model input space to display space."""
        model_w, model_h = self.model.image_size
        display = self.detection.display_size or self.model.image_size
        return display[0] / model_w, display[1] / model_h


def iou_threshold_from_exponent(exponent: int) -> float:
    """Map an exponent slider position (0..12) to an IoU threshold 10**-exponent."""
    if not (0 <= exponent <= 12):
        raise ValueError(f"IoU exponent must be in [0, 12], got {exponent}.")
    return 10.0 ** -exponent


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

_VALID_MODES = {"oriented", "axis_aligned"}
_VALID_LAYOUTS = {"auto", "rows", "columns"}
_VALID_OUTPUT_MODES = {"log", "save_json", "save_csv"}


def _validate(config: AppConfig) -> None:
    """Validate configuration values. Raises ValueError on invalid state."""

    if config.detection.mode not in _VALID_MODES:
        raise ValueError(
            f"Invalid detection.mode: '{config.detection.mode}'. "
            f"Must be one of {_VALID_MODES}."
        )

    if config.detection.layout not in _VALID_LAYOUTS:
        raise ValueError(
            f"Invalid detection.layout: '{config.detection.layout}'. "
            f"Must be one of {_VALID_LAYOUTS}."
        )

    # Validate each mode in comma-separated list
    modes = set(m.strip() for m in config.output.mode.split(','))
    invalid_modes = modes - _VALID_OUTPUT_MODES
    if invalid_modes:
        raise ValueError(
            f"Invalid output.mode(s): {invalid_modes}. "
            f"Valid modes: {_VALID_OUTPUT_MODES}. "
            f"Use comma-separated values for multiple outputs."
        )

    if not (0.0 < config.detection.confidence_threshold < 1.0):
        raise ValueError(
            f"detection.confidence_threshold must be in (0.0, 1.0), "
            f"got {config.detection.confidence_threshold}."
        )

    iou_threshold = config.detection.iou_threshold
    if iou_threshold is not None and not (0.0 < iou_threshold <= 1.0):
        raise ValueError(
            f"detection.iou_threshold must be in (0.0, 1.0], "
            f"got {iou_threshold}."
        )

    if not config.model.class_names:
        raise ValueError("model.class_names must contain at least one label.")

    _validate_size("model.image_size", config.model.image_size)
    if config.detection.display_size is not None:
        _validate_size("detection.display_size", config.detection.display_size)

    if config.detection.counted_class_index < 0:
        raise ValueError(
            f"detection.counted_class_index must be non-negative, "
            f"got {config.detection.counted_class_index}."
        )

    if config.detection.max_detections <= 0:
        raise ValueError(
            f"detection.max_detections must be positive, "
            f"got {config.detection.max_detections}."
        )


def _validate_size(name: str, size) -> None:
    if len(size) != 2:
        raise ValueError(f"{name} must be a (width, height) tuple, got {size}.")

    if any(d <= 0 for d in size):
        raise ValueError(f"{name} dimensions must be positive, got {size}.")


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

def _parse_tuple(value, expected_len: int, cast_type=float):
    """Convert a list from YAML (or 'a,b' from env) into a typed tuple."""
    if isinstance(value, str):
        value = [v.strip() for v in value.split(",")]
    if isinstance(value, (list, tuple)):
        if len(value) != expected_len:
            raise ValueError(
                f"Expected {expected_len} values, got {len(value)}: {value}"
            )
        return tuple(cast_type(v) for v in value)
    return value


def _parse_class_names(value) -> Tuple[str, ...]:
    """Accept a list, a comma string, or an exported {index: name} mapping."""
    if isinstance(value, dict):
        return tuple(str(name) for _, name in sorted(value.items(), key=lambda kv: int(kv[0])))
    if isinstance(value, str):
        return tuple(v.strip() for v in value.split(",") if v.strip())
    return tuple(str(v) for v in value)


def _build_model_config(raw: dict) -> ModelConfig:
    """Build ModelConfig from a raw YAML dict."""
    kwargs = {}
    if "class_names" in raw:
        kwargs["class_names"] = _parse_class_names(raw["class_names"])
    if "image_size" in raw:
        kwargs["image_size"] = _parse_tuple(raw["image_size"], 2, int)
    if "metadata_path" in raw:
        val = raw["metadata_path"]
        kwargs["metadata_path"] = str(val) if val is not None else None
    return ModelConfig(**kwargs)


def _build_detection_config(raw: dict) -> DetectionConfig:
    """Build DetectionConfig from a raw YAML dict."""
    kwargs = {}
    if "mode" in raw:
        kwargs["mode"] = str(raw["mode"]).lower()
    if "confidence_threshold" in raw:
        kwargs["confidence_threshold"] = float(raw["confidence_threshold"])
    if "iou_threshold" in raw:
        kwargs["iou_threshold"] = float(raw["iou_threshold"])
    if "iou_exponent" in raw:
        kwargs["iou_threshold"] = iou_threshold_from_exponent(int(raw["iou_exponent"]))
    if "layout" in raw:
        kwargs["layout"] = str(raw["layout"]).lower()
    if "display_size" in raw:
        val = raw["display_size"]
        kwargs["display_size"] = _parse_tuple(val, 2, int) if val is not None else None
    if "counted_class_index" in raw:
        kwargs["counted_class_index"] = int(raw["counted_class_index"])
    if "max_detections" in raw:
        kwargs["max_detections"] = int(raw["max_detections"])
    return DetectionConfig(**kwargs)


def _build_input_config(raw: dict) -> InputConfig:
    """Build InputConfig from a raw YAML dict."""
    kwargs = {}
    if "source" in raw:
        kwargs["source"] = str(raw["source"])
    return InputConfig(**kwargs)


def _build_output_config(raw: dict) -> OutputConfig:
    """Build OutputConfig from a raw YAML dict."""
    kwargs = {}
    if "mode" in raw:
        kwargs["mode"] = str(raw["mode"]).lower()
    if "save_path" in raw:
        kwargs["save_path"] = str(raw["save_path"])
    return OutputConfig(**kwargs)


def _resolve(path: str) -> Path:
    resolved = Path(path)
    if not resolved.is_absolute():
        resolved = _PROJECT_ROOT / resolved
    return resolved


def load_model_metadata(metadata_path: str, base: Optional[ModelConfig] = None) -> ModelConfig:
    """Apply an exported model metadata.yaml on top of a ModelConfig.

    The metadata file is the one written next to exported YOLO models:

        names: {0: plane, 1: ship, ...}
        imgsz: [1024, 1024]

    Missing keys leave the base values untouched.

    Raises:
        FileNotFoundError: If the metadata file does not exist.
        ValueError: If 'names' or 'imgsz' is malformed.
    """
    base = base or ModelConfig()
    resolved = _resolve(metadata_path)

    if not resolved.is_file():
        raise FileNotFoundError(
            f"Model metadata not found: {resolved}. "
            f"Provide the exported metadata.yaml or update 'model.metadata_path'."
        )

    with open(resolved, "r", encoding="utf-8") as f:
        metadata = yaml.safe_load(f) or {}

    kwargs = {"metadata_path": metadata_path}
    if metadata.get("names"):
        kwargs["class_names"] = _parse_class_names(metadata["names"])
        logger.info("Class names from metadata: %d labels", len(kwargs["class_names"]))

    imgsz = metadata.get("imgsz")
    if isinstance(imgsz, (list, tuple)) and len(imgsz) >= 2:
        kwargs["image_size"] = (int(imgsz[0]), int(imgsz[1]))
        logger.info("Model image size from metadata: %s", kwargs["image_size"])

    return replace(base, **kwargs)


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "OBB_DETECT_"


def _apply_env_overrides(raw: dict) -> dict:
    """Apply environment variable overrides to the raw config dict.

    Environment variables follow the pattern:
        OBB_DETECT_DETECTION_MODE=axis_aligned
        OBB_DETECT_DETECTION_IOU_THRESHOLD=0.1

    The variable name maps to the nested config key by replacing
    underscores after the section name with dots.
    """
    env_map = {
        f"{_ENV_PREFIX}MODEL_CLASS_NAMES": ("model", "class_names"),
        f"{_ENV_PREFIX}MODEL_IMAGE_SIZE": ("model", "image_size"),
        f"{_ENV_PREFIX}MODEL_METADATA_PATH": ("model", "metadata_path"),
        f"{_ENV_PREFIX}DETECTION_MODE": ("detection", "mode"),
        f"{_ENV_PREFIX}DETECTION_CONFIDENCE_THRESHOLD": ("detection", "confidence_threshold"),
        f"{_ENV_PREFIX}DETECTION_IOU_THRESHOLD": ("detection", "iou_threshold"),
        f"{_ENV_PREFIX}DETECTION_LAYOUT": ("detection", "layout"),
        f"{_ENV_PREFIX}DETECTION_DISPLAY_SIZE": ("detection", "display_size"),
        f"{_ENV_PREFIX}DETECTION_COUNTED_CLASS_INDEX": ("detection", "counted_class_index"),
        f"{_ENV_PREFIX}DETECTION_MAX_DETECTIONS": ("detection", "max_detections"),
        f"{_ENV_PREFIX}INPUT_SOURCE": ("input", "source"),
        f"{_ENV_PREFIX}OUTPUT_MODE": ("output", "mode"),
        f"{_ENV_PREFIX}OUTPUT_SAVE_PATH": ("output", "save_path"),
    }

    for env_var, (section, key) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            raw.setdefault(section, {})[key] = value
            logger.debug("Config override from env: %s=%s", env_var, value)

    return raw


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load and validate application configuration.

    Precedence (highest → lowest):
        Environment variables > YAML file > Hard-coded defaults

    Model metadata (model.metadata_path), when configured, overrides
    class names and image size from the other layers.

    Args:
        config_path: Path to a YAML configuration file. If None,
                     the system runs entirely on defaults (safe for
                     programmatic usage).

    Returns:
        A validated, frozen AppConfig instance.

    Raises:
        FileNotFoundError: If config_path or the metadata file does not exist.
        ValueError: If any configuration value is invalid.
        yaml.YAMLError: If a YAML file is malformed.
    """
    raw: dict = {}

    # --- Layer 1: YAML file ---
    if config_path is not None:
        resolved = _resolve(config_path)

        if not resolved.is_file():
            raise FileNotFoundError(
                f"Configuration file not found: {resolved}. "
                f"Provide a valid path or omit to use defaults."
            )

        logger.info("Loading config from: %s", resolved)
        with open(resolved, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    # --- Layer 2: Environment variable overrides ---
    raw = _apply_env_overrides(raw)

    # --- Build typed configs ---
    model = _build_model_config(raw.get("model", {}))
    if model.metadata_path is not None:
        model = load_model_metadata(model.metadata_path, model)

    config = AppConfig(
        model=model,
        detection=_build_detection_config(raw.get("detection", {})),
        input=_build_input_config(raw.get("input", {})),
        output=_build_output_config(raw.get("output", {})),
    )

    # --- Validate ---
    _validate(config)

    logger.debug("Configuration loaded: %s", config)
    return config


def validate_config(config: AppConfig) -> AppConfig:
    """Validate a programmatically built config and return it unchanged."""
    _validate(config)
    return config
