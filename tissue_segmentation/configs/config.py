"""
Configuration management for tissue classification.

Provides dataclass-based configuration with YAML loading support.
"""

import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml


class ConfigurationError(ValueError):
    """Invalid or inconsistent configuration."""


# Number of tissue classes -> ordered (class index, output name) pairs.
# Index N (one past the last tissue) is the background class.
DEFAULT_PROBABILITY_MAPS: Dict[int, List[Tuple[int, str]]] = {
    2: [(0, "gray"), (1, "white")],
    3: [(0, "csf"), (1, "gray"), (2, "white")],
    5: [
        (0, "caudate"),
        (1, "putamen"),
        (2, "thalamus"),
        (3, "pallidum"),
        (4, "white"),
    ],
    11: [
        (0, "csf"),
        (1, "gray"),
        (2, "caudate"),
        (3, "putamen"),
        (4, "nigra"),
        (5, "cerebellum"),
        (6, "thalamus"),
        (7, "pallidum"),
        (8, "brainstem"),
        (9, "white"),
        (10, "cerebellum-white"),
        (11, "other"),
    ],
}


@dataclass
class ClassificationConfig:
    """EM engine and stopping parameters."""

    # Nominal iteration count, used for progress reporting
    iterations: int = 15
    # Hard cap on EM iterations
    max_iterations: int = 50
    tolerance: float = 0.001

    # Voxels with this intensity are not classified; None classifies all
    padding: Optional[float] = -1.0

    variance_floor: float = 1e-6
    weight_floor: float = 1e-6
    separation_tolerance: float = 1e-3

    exclude_background: bool = True
    synthesize_background: bool = True
    resample_atlases: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "iterations": self.iterations,
            "max_iterations": self.max_iterations,
            "tolerance": self.tolerance,
            "padding": self.padding,
            "variance_floor": self.variance_floor,
            "weight_floor": self.weight_floor,
            "separation_tolerance": self.separation_tolerance,
            "exclude_background": self.exclude_background,
            "synthesize_background": self.synthesize_background,
            "resample_atlases": self.resample_atlases,
        }


@dataclass
class OutputConfig:
    """Output locations and naming."""

    output_dir: Path = Path(".")
    parameters_filename: str = "parameters.txt"
    probability_map_extension: str = ".nii.gz"
    probability_maps: Dict[int, List[Tuple[int, str]]] = field(
        default_factory=lambda: copy.deepcopy(DEFAULT_PROBABILITY_MAPS)
    )

    def __post_init__(self):
        if isinstance(self.output_dir, str):
            self.output_dir = Path(self.output_dir)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "output_dir": str(self.output_dir),
            "parameters_filename": self.parameters_filename,
            "probability_map_extension": self.probability_map_extension,
            "probability_maps": {
                int(n): [[int(i), str(name)] for i, name in entries]
                for n, entries in self.probability_maps.items()
            },
        }


@dataclass
class Config:
    """
    Main configuration class combining all config sections.

    Can be loaded from YAML or created programmatically.
    """

    # Paths
    image_path: Optional[Path] = None
    atlas_paths: List[Path] = field(default_factory=list)
    background_path: Optional[Path] = None
    segmentation_path: Optional[Path] = None

    # Declared number of tissue classes; defaults to the atlas count
    number_of_tissues: Optional[int] = None

    # Sub-configs
    classification: ClassificationConfig = field(default_factory=ClassificationConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    def __post_init__(self):
        """Convert string paths to Path objects."""
        if isinstance(self.image_path, str):
            self.image_path = Path(self.image_path)
        if isinstance(self.background_path, str):
            self.background_path = Path(self.background_path)
        if isinstance(self.segmentation_path, str):
            self.segmentation_path = Path(self.segmentation_path)
        self.atlas_paths = [Path(p) for p in self.atlas_paths]

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "Config":
        """
        Load configuration from YAML file.

        Args:
            path: Path to YAML configuration file.

        Returns:
            Config instance.
        """
        path = Path(path)

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Build a Config from a nested dictionary, expanding env vars in paths."""
        data = dict(data)

        for key in ["image_path", "background_path", "segmentation_path"]:
            if key in data and data[key]:
                data[key] = os.path.expandvars(data[key])
        if data.get("atlas_paths"):
            data["atlas_paths"] = [os.path.expandvars(p) for p in data["atlas_paths"]]

        classification = ClassificationConfig(**data.pop("classification", None) or {})
        output_data = dict(data.pop("output", None) or {})
        if "probability_maps" in output_data:
            output_data["probability_maps"] = _parse_probability_maps(
                output_data["probability_maps"]
            )
        output = OutputConfig(**output_data)

        return cls(classification=classification, output=output, **data)

    def to_yaml(self, path: Union[str, Path]) -> None:
        """
        Save configuration to YAML file.

        Args:
            path: Output path.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert entire config to nested dictionary."""
        return {
            "image_path": str(self.image_path) if self.image_path else None,
            "atlas_paths": [str(p) for p in self.atlas_paths],
            "background_path": (
                str(self.background_path) if self.background_path else None
            ),
            "segmentation_path": (
                str(self.segmentation_path) if self.segmentation_path else None
            ),
            "number_of_tissues": self.number_of_tissues,
            "classification": self.classification.to_dict(),
            "output": self.output.to_dict(),
        }

    def validate(self) -> None:
        """
        Check the configuration before any classification runs.

        Raises:
            ConfigurationError: On missing inputs or inconsistent settings.
        """
        if self.image_path is None:
            raise ConfigurationError("No input image given")
        if not self.atlas_paths:
            raise ConfigurationError("At least one atlas is required")
        if self.segmentation_path is None:
            raise ConfigurationError("No output segmentation path given")
        if (
            self.number_of_tissues is not None
            and self.number_of_tissues != len(self.atlas_paths)
        ):
            raise ConfigurationError(
                f"Declared {self.number_of_tissues} tissues but got "
                f"{len(self.atlas_paths)} atlases"
            )

        c = self.classification
        if c.iterations < 1:
            raise ConfigurationError(f"iterations must be positive, got {c.iterations}")
        if c.max_iterations < 1:
            raise ConfigurationError(
                f"max_iterations must be positive, got {c.max_iterations}"
            )
        if c.tolerance < 0:
            raise ConfigurationError(f"tolerance must be >= 0, got {c.tolerance}")
        if c.variance_floor <= 0 or c.weight_floor <= 0:
            raise ConfigurationError("variance_floor and weight_floor must be positive")

        for n, entries in self.output.probability_maps.items():
            if not isinstance(n, int):
                raise ConfigurationError(f"Probability map key must be int, got {n!r}")
            for index, name in entries:
                if not isinstance(index, int) or index < 0:
                    raise ConfigurationError(
                        f"Invalid class index {index!r} for '{name}' (N={n})"
                    )


def _parse_probability_maps(
    table: Dict[Any, List[Any]],
) -> Dict[int, List[Tuple[int, str]]]:
    """Convert YAML lists to (index, name) tuples keyed by int."""
    result = {}
    for n, entries in table.items():
        try:
            key = int(n)
            result[key] = [(int(index), str(name)) for index, name in entries]
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid probability map entry for {n!r}: {e}")
    return result
