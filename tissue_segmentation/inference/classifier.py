"""
Classification pipeline for atlas-guided tissue segmentation.

Loads an image and its atlases, runs the EM fit and writes the label volume,
the Gaussian parameter report and named probability maps.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Sequence, Union

import numpy as np

from ..classification.convergence import ConvergenceReport, run_em
from ..classification.engine import EMEngine
from ..classification.parameters import GaussianParameterSet
from ..configs.config import ClassificationConfig, OutputConfig
from ..data.atlas import AtlasSet, load_atlas_set
from ..data.volume import VoxelGrid
from ..utils.io import load_voxel_grid, save_volume, write_parameters
from ..utils.naming import probability_map_outputs

logger = logging.getLogger(__name__)


@dataclass
class ClassificationResult:
    """Outputs of one classification run."""

    segmentation: np.ndarray
    parameters: GaussianParameterSet
    report: ConvergenceReport
    engine: EMEngine
    outputs: Dict[str, Path] = field(default_factory=dict)


class TissueClassifier:
    """
    End-to-end tissue classifier.

    Handles:
    - Engine construction from configuration
    - EM iteration with the dual stopping rule
    - Hard segmentation with optional background exclusion
    - Writing label volume, parameter report and probability maps
    """

    def __init__(
        self,
        config: Optional[ClassificationConfig] = None,
        show_progress: bool = True,
    ) -> None:
        """
        Initialize classifier.

        Args:
            config: Engine and stopping parameters.
            show_progress: Show a progress bar while iterating.
        """
        self.config = config or ClassificationConfig()
        self.show_progress = show_progress

    def classify(self, grid: VoxelGrid, atlases: AtlasSet) -> ClassificationResult:
        """
        Classify an in-memory grid.

        Args:
            grid: Intensity grid with padding value set.
            atlases: Spatial priors on the grid.

        Returns:
            ClassificationResult with the label volume and fitted parameters.
        """
        engine = EMEngine(
            grid,
            atlases,
            variance_floor=self.config.variance_floor,
            weight_floor=self.config.weight_floor,
            separation_tolerance=self.config.separation_tolerance,
        )
        engine.initialize()

        report = run_em(
            engine,
            tolerance=self.config.tolerance,
            max_iterations=self.config.max_iterations,
            nominal_iterations=self.config.iterations,
            show_progress=self.show_progress,
        )

        segmentation = engine.decide(exclude_background=self.config.exclude_background)

        return ClassificationResult(
            segmentation=segmentation,
            parameters=engine.parameters,
            report=report,
            engine=engine,
        )

    def classify_files(
        self,
        image_path: Union[str, Path],
        atlas_paths: Sequence[Union[str, Path]],
        segmentation_path: Union[str, Path],
        background_path: Optional[Union[str, Path]] = None,
        output: Optional[OutputConfig] = None,
    ) -> ClassificationResult:
        """
        Classify an image file and write all outputs.

        Args:
            image_path: Intensity image (NIfTI).
            atlas_paths: One atlas per tissue class, in class order.
            segmentation_path: Output path for the label volume.
            background_path: Optional explicit background atlas.
            output: Output locations and naming.

        Returns:
            ClassificationResult with ``outputs`` filled in.
        """
        output = output or OutputConfig()

        grid = load_voxel_grid(image_path, padding=self.config.padding)
        logger.info(f"Loaded {Path(image_path).name}: {grid}")

        atlases = load_atlas_set(
            atlas_paths,
            grid,
            background_path=background_path,
            synthesize_background=self.config.synthesize_background,
            resample=self.config.resample_atlases,
        )

        result = self.classify(grid, atlases)
        result.outputs = self.write_outputs(result, grid, segmentation_path, output)
        return result

    def write_outputs(
        self,
        result: ClassificationResult,
        grid: VoxelGrid,
        segmentation_path: Union[str, Path],
        output: OutputConfig,
    ) -> Dict[str, Path]:
        """
        Write segmentation, parameter report and named probability maps.

        Args:
            result: Classification result.
            grid: Grid providing the output geometry.
            segmentation_path: Label volume path.
            output: Output locations and naming.

        Returns:
            Dictionary mapping output name to written path.
        """
        outputs = {}

        output_dir = Path(output.output_dir)
        outputs["parameters"] = write_parameters(
            output_dir / output.parameters_filename,
            result.engine.export_parameters(),
        )

        outputs["segmentation"] = save_volume(
            segmentation_path, result.segmentation, grid, dtype=np.int16
        )
        logger.info(f"Saved segmentation: {segmentation_path}")

        engine = result.engine
        maps = probability_map_outputs(
            engine.atlases.number_of_tissues,
            output.probability_maps,
            output_dir=output_dir,
            extension=output.probability_map_extension,
            number_of_classes=engine.number_of_classes,
        )
        for class_index, path in maps:
            save_volume(
                path,
                engine.export_probability_map(class_index),
                grid,
                dtype=np.float32,
            )
            outputs[path.name] = path

        if maps:
            logger.info(f"Saved {len(maps)} probability maps to {output_dir}")

        return outputs
