"""
I/O utilities for loading and saving classification inputs and outputs.
"""

from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import nibabel as nib
import numpy as np

from ..data.volume import VoxelGrid


def load_nifti(path: Union[str, Path]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Load NIfTI file and return data with affine matrix.

    Args:
        path: Path to NIfTI file (.nii or .nii.gz).

    Returns:
        Tuple of (data array, affine matrix).

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Image not found: {path}")

    nii = nib.load(path)
    data = nii.get_fdata()
    affine = nii.affine
    return data, affine


def save_nifti(
    path: Union[str, Path],
    data: np.ndarray,
    affine: np.ndarray,
    dtype: Optional[np.dtype] = None,
) -> Path:
    """
    Save array as NIfTI file.

    Args:
        path: Output path.
        data: Data array.
        affine: 4x4 affine transformation matrix.
        dtype: Optional dtype to cast data to before saving.

    Returns:
        Path to saved file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if dtype is not None:
        data = data.astype(dtype)

    nii = nib.Nifti1Image(data, affine)
    nii.set_data_dtype(data.dtype)
    nib.save(nii, path)

    return path


def load_voxel_grid(
    path: Union[str, Path],
    padding: Optional[float] = None,
) -> VoxelGrid:
    """
    Load a NIfTI image as a VoxelGrid.

    Args:
        path: Path to NIfTI file.
        padding: Padding value marking excluded voxels.

    Returns:
        VoxelGrid with the image's affine.
    """
    data, affine = load_nifti(path)
    if data.ndim == 4 and data.shape[3] == 1:
        data = data[..., 0]
    return VoxelGrid(data, affine, padding_value=padding)


def save_volume(
    path: Union[str, Path],
    volume: np.ndarray,
    grid: VoxelGrid,
    dtype: Optional[np.dtype] = None,
) -> Path:
    """Save a volume with the geometry of a grid."""
    return save_nifti(path, volume, np.asarray(grid.affine), dtype=dtype)


def write_parameters(path: Union[str, Path], text: str) -> Path:
    """
    Write a Gaussian parameter report.

    Args:
        path: Output path.
        text: Report text.

    Returns:
        Path to written file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


def read_parameters(path: Union[str, Path]) -> Dict[int, Tuple[float, float, float]]:
    """
    Parse a parameter report written by write_parameters.

    Args:
        path: Report path.

    Returns:
        Dictionary mapping class index to (mean, variance, weight).
    """
    result = {}
    for line in Path(path).read_text().splitlines():
        if not line.startswith("Class "):
            continue
        head, values = line.split(":", 1)
        index = int(head.split()[1])
        fields = dict(item.split("=") for item in values.split())
        result[index] = (
            float(fields["mean"]),
            float(fields["variance"]),
            float(fields["weight"]),
        )
    return result
