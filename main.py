"""
OBB Detection CLI Entrypoint.

Responsibility:
    Parse command-line arguments, configure the application, wire together
    the detection session and I/O handlers, and run the main processing loop
    over raw model outputs dumped by the inference step.

Usage:
    python main.py --source dumps/                      # Directory of .npy/.npz
    python main.py --source frame.npy --iou-exponent 6
    python main.py --source dumps/ --output-mode log,save_json
    python main.py --config my_config.yaml

This module is the executable entry point. It should not be imported
by other modules.
"""

import argparse
import logging
import sys
import time
from dataclasses import replace

# Configure logging before importing local modules
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("main")

from obb_detection.config import (
    AppConfig,
    iou_threshold_from_exponent,
    load_config,
    load_model_metadata,
    validate_config,
)
from obb_detection.input_handler import InputHandler
from obb_detection.output_handler import OutputHandler
from obb_detection.session import DetectionSession


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Oriented Bounding Box Detection — post-processing CLI",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--source",
        type=str,
        help="Input source: path to a .npy/.npz tensor dump or a directory of them.",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to YAML configuration file.",
    )
    parser.add_argument(
        "--metadata",
        type=str,
        help="Exported model metadata.yaml (class names, image size). Overrides config.",
    )
    parser.add_argument(
        "--mode",
        type=str,
        choices=["oriented", "axis_aligned"],
        help="Detector variant. Overrides config.",
    )
    parser.add_argument(
        "--layout",
        type=str,
        choices=["auto", "rows", "columns"],
        help="Raw tensor layout. Overrides config.",
    )
    parser.add_argument(
        "--confidence",
        type=float,
        help="Detection confidence threshold (0.0 - 1.0). Overrides config.",
    )
    iou = parser.add_mutually_exclusive_group()
    iou.add_argument(
        "--iou",
        type=float,
        help="NMS IoU threshold (0.0 - 1.0]. Overrides config.",
    )
    iou.add_argument(
        "--iou-exponent",
        type=int,
        help="NMS IoU threshold as 10^-N for N in 0..12. Overrides config.",
    )
    parser.add_argument(
        "--display-size",
        type=int,
        nargs=2,
        metavar=("WIDTH", "HEIGHT"),
        help="Display size that box coordinates are mapped to. Overrides config.",
    )
    parser.add_argument(
        "--output-mode",
        type=str,
        help="Output mode(s). Use comma-separated values for multiple outputs: "
             "log, save_json, save_csv. Example: 'log,save_json'. Overrides config.",
    )
    parser.add_argument(
        "--output-path",
        type=str,
        help="Directory for output artifacts. Overrides config.",
    )

    return parser.parse_args()


def apply_cli_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Return a new validated config with CLI arguments layered on top."""
    model = config.model
    if args.metadata is not None:
        model = load_model_metadata(args.metadata, model)

    detection_kwargs = {}
    if args.mode is not None:
        detection_kwargs["mode"] = args.mode
    if args.layout is not None:
        detection_kwargs["layout"] = args.layout
    if args.confidence is not None:
        detection_kwargs["confidence_threshold"] = args.confidence
    if args.iou is not None:
        detection_kwargs["iou_threshold"] = args.iou
    if args.iou_exponent is not None:
        detection_kwargs["iou_threshold"] = iou_threshold_from_exponent(args.iou_exponent)
    if args.display_size is not None:
        detection_kwargs["display_size"] = tuple(args.display_size)

    output_kwargs = {}
    if args.output_mode is not None:
        output_kwargs["mode"] = args.output_mode
    if args.output_path is not None:
        output_kwargs["save_path"] = args.output_path

    config = replace(
        config,
        model=model,
        detection=replace(config.detection, **detection_kwargs),
        input=replace(config.input, source=args.source) if args.source is not None else config.input,
        output=replace(config.output, **output_kwargs),
    )
    return validate_config(config)


def main() -> int:
    """Main execution loop."""
    args = parse_args()

    # 1. Load Configuration (CLI args > ENV > YAML > Defaults)
    try:
        config = apply_cli_overrides(load_config(args.config), args)
        logger.info("Configuration active for this run.")

    except Exception as e:
        logger.error("Configuration error: %s", e)
        return 1

    # 2. Initialize Components
    try:
        session = DetectionSession(
            config,
            on_count_change=lambda count: logger.debug("Count changed: %d", count),
        )
        input_handler = InputHandler(source=config.input.source)
        output_handler = OutputHandler(config)

    except (FileNotFoundError, ValueError) as e:
        logger.error("Initialization failed: %s", e)
        return 1
    except Exception as e:
        logger.exception("Unexpected initialization error: %s", e)
        return 1

    # 3. Processing Loop
    logger.info("Starting processing loop.")

    frame_count = 0
    failed_frames = 0
    start_time = time.perf_counter()

    try:
        for frame_id, raw in input_handler:
            frame_count += 1

            # Detect (malformed frames come back empty with an error)
            result = session.process(raw)
            if not result.ok:
                failed_frames += 1

            # log occasional progress
            if frame_count % 30 == 0:
                logger.info("Processed %d frames...", frame_count)

            output_handler.process_frame(frame_id, result)

    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
    except Exception as e:
        logger.exception("Runtime error during processing: %s", e)
        return 1
    finally:
        # 4. Cleanup
        elapsed = time.perf_counter() - start_time
        fps = frame_count / elapsed if elapsed > 0 else 0.0

        output_handler.finalize()

        logger.info(
            "Processing finished. Total frames: %d (%d skipped). Avg FPS: %.2f.",
            frame_count, failed_frames, fps
        )

    return 0


if __name__ == "__main__":
    sys.exit(main())
