#!/usr/bin/env python3
"""
Atlas-guided EM tissue classification script.

Usage:
    python classify.py image.nii.gz 3 csf.nii.gz gray.nii.gz white.nii.gz seg.nii.gz
    python classify.py image.nii.gz 2 gm.nii.gz wm.nii.gz seg.nii.gz --padding 0 --iterations 20
    python classify.py image.nii.gz 3 a0.nii a1.nii a2.nii seg.nii --background bg.nii --output-dir ./maps
"""

import argparse
import logging
from pathlib import Path

# Add parent to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from tissue_segmentation.configs.config import Config, ConfigurationError
from tissue_segmentation.inference.classifier import TissueClassifier
from tissue_segmentation.visualization.plots import plot_mixture_fit

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Classify tissues with an atlas-guided Gaussian mixture"
    )

    parser.add_argument("image", type=Path, help="Input intensity image")
    parser.add_argument("n", type=int, help="Number of tissue classes")
    parser.add_argument(
        "atlases",
        type=Path,
        nargs="+",
        help="One probability atlas per tissue class, in class order",
    )
    parser.add_argument("output", type=Path, help="Output segmentation path")

    parser.add_argument(
        "--config",
        type=Path,
        help="YAML configuration; command-line options override it",
    )
    parser.add_argument(
        "--iterations",
        type=int,
        help="Nominal iteration count for progress reporting (default: 15)",
    )
    parser.add_argument(
        "--max-iterations",
        type=int,
        help="Hard iteration cap (default: 50)",
    )
    parser.add_argument(
        "--tolerance",
        type=float,
        help="Relative log-likelihood change for convergence (default: 0.001)",
    )
    parser.add_argument(
        "--padding",
        type=float,
        help=(
            "Intensity of voxels excluded from classification (default: -1). "
            "Every voxel exactly equal to it is skipped, so real data at that "
            "intensity needs a different value"
        ),
    )
    parser.add_argument(
        "--background",
        type=Path,
        help="Explicit background probability atlas",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        help="Directory for the parameter report and probability maps",
    )
    parser.add_argument(
        "--keep-background",
        action="store_true",
        help="Allow the background class in the segmentation",
    )
    parser.add_argument(
        "--plot",
        type=Path,
        help="Save a histogram with the fitted mixture to this path",
    )
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable the progress bar",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log parameters at every iteration",
    )

    return parser


def build_config(args: argparse.Namespace) -> Config:
    """Merge the optional YAML config with command-line arguments."""
    config = Config.from_yaml(args.config) if args.config else Config()

    config.image_path = args.image
    config.number_of_tissues = args.n
    config.atlas_paths = list(args.atlases)
    config.segmentation_path = args.output
    if args.background is not None:
        config.background_path = args.background

    c = config.classification
    if args.iterations is not None:
        c.iterations = args.iterations
    if args.max_iterations is not None:
        c.max_iterations = args.max_iterations
    if args.tolerance is not None:
        c.tolerance = args.tolerance
    if args.padding is not None:
        c.padding = args.padding
    if args.keep_background:
        c.exclude_background = False

    if args.output_dir is not None:
        config.output.output_dir = args.output_dir

    return config


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger("tissue_segmentation").setLevel(logging.DEBUG)

    try:
        config = build_config(args)
        config.validate()
    except ConfigurationError as e:
        parser.error(str(e))

    # Validate inputs
    inputs = [config.image_path, *config.atlas_paths]
    if config.background_path is not None:
        inputs.append(config.background_path)
    for path in inputs:
        if not path.exists():
            logger.error(f"Input not found: {path}")
            return 1

    classifier = TissueClassifier(
        config.classification,
        show_progress=not args.no_progress,
    )

    result = classifier.classify_files(
        config.image_path,
        config.atlas_paths,
        config.segmentation_path,
        background_path=config.background_path,
        output=config.output,
    )

    logger.info(
        f"Stopped: {result.report.state.value} after {result.report.iterations} iterations"
    )
    logger.info("Gaussian parameters:\n" + result.engine.export_parameters())

    if args.plot:
        plot_mixture_fit(
            result.engine.grid.intensities,
            result.parameters,
            output_path=args.plot,
            show=False,
        )
        logger.info(f"Saved mixture plot: {args.plot}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
