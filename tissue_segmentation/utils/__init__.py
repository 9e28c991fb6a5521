"""Shared utility functions."""

from .io import (
    load_nifti,
    load_voxel_grid,
    read_parameters,
    save_nifti,
    save_volume,
    write_parameters,
)
from .naming import probability_map_outputs

__all__ = [
    # I/O
    "load_nifti",
    "load_voxel_grid",
    "read_parameters",
    "save_nifti",
    "save_volume",
    "write_parameters",
    # Naming
    "probability_map_outputs",
]
