"""
Atlas resampling utilities.

Brings probability atlases onto the voxel grid of the image being classified.
"""

import logging
from pathlib import Path
from typing import Tuple, Union

import nibabel as nib
import nibabel.processing as nip
import numpy as np

logger = logging.getLogger(__name__)


def has_grid_mismatch(
    image: nib.Nifti1Image,
    shape: Tuple[int, int, int],
    affine: np.ndarray,
) -> bool:
    """
    Check whether an image lies on a different voxel grid.

    Args:
        image: Image to check.
        shape: Reference grid shape.
        affine: Reference 4x4 affine.

    Returns:
        True if shape or affine differ from the reference.
    """
    return (
        tuple(image.shape[:3]) != tuple(shape)
        or not np.allclose(image.affine, affine, atol=1e-6)
    )


def resample_to_grid(
    image: nib.Nifti1Image,
    shape: Tuple[int, int, int],
    affine: np.ndarray,
    order: int = 1,
) -> nib.Nifti1Image:
    """
    Resample an image onto a reference voxel grid.

    Probability atlases use trilinear interpolation by default, which keeps
    values inside [0, 1].

    Args:
        image: Input NIfTI image.
        shape: Target grid shape.
        affine: Target 4x4 affine.
        order: Interpolation order (0=nearest, 1=linear, 3=cubic).

    Returns:
        Resampled NIfTI image.
    """
    return nip.resample_from_to(image, (tuple(shape), affine), order=order, cval=0.0)


def load_on_grid(
    path: Union[str, Path],
    shape: Tuple[int, int, int],
    affine: np.ndarray,
    resample: bool = True,
    order: int = 1,
) -> np.ndarray:
    """
    Load a NIfTI volume and return its data on a reference grid.

    Args:
        path: Path to NIfTI file.
        shape: Reference grid shape.
        affine: Reference 4x4 affine.
        resample: Resample if the grids differ. If False, a mismatch is an error.
        order: Interpolation order used when resampling.

    Returns:
        3D float64 array with the reference shape.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the grids differ and resampling is disabled.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Volume not found: {path}")

    image = nib.load(path)

    if has_grid_mismatch(image, shape, affine):
        if not resample:
            raise ValueError(
                f"{path.name} has shape {image.shape[:3]}, expected {tuple(shape)}"
            )
        logger.info(f"Resampling {path.name}: {image.shape[:3]} -> {tuple(shape)}")
        image = resample_to_grid(image, shape, affine, order=order)

    data = np.asarray(image.get_fdata(), dtype=np.float64)
    if data.ndim == 4 and data.shape[3] == 1:
        data = data[..., 0]
    return data
