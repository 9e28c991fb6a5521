"""
Decision rules turning posterior probabilities into hard labels.
"""

from typing import Optional

import numpy as np

# Label written at voxels excluded from classification
UNLABELED = 0


def max_posterior_labels(
    posteriors: np.ndarray,
    exclude: Optional[int] = None,
) -> np.ndarray:
    """
    Index of the most probable class for each voxel.

    Ties go to the lowest class index.

    Args:
        posteriors: (M, K) posterior probabilities.
        exclude: Class that may not be assigned. Voxels where it is the most
            probable class receive the next most probable one instead.

    Returns:
        (M,) array of 0-based class indices.
    """
    if exclude is None:
        return np.argmax(posteriors, axis=1)

    number_of_classes = posteriors.shape[1]
    if not 0 <= exclude < number_of_classes:
        raise IndexError(
            f"Excluded class {exclude} out of range for {number_of_classes} classes"
        )
    if number_of_classes < 2:
        raise ValueError("Cannot exclude the only class")

    candidates = posteriors.copy()
    candidates[:, exclude] = -np.inf
    return np.argmax(candidates, axis=1)


def labels_to_volume(
    labels: np.ndarray,
    mask: np.ndarray,
    dtype: np.dtype = np.int16,
) -> np.ndarray:
    """
    Scatter class indices back onto the grid.

    Args:
        labels: (M,) 0-based class indices of the non-padding voxels.
        mask: Boolean grid of non-padding voxels.
        dtype: Output dtype.

    Returns:
        Label volume with class index + 1 at classified voxels and
        UNLABELED at padding voxels.
    """
    volume = np.full(mask.shape, UNLABELED, dtype=dtype)
    volume[mask] = labels + 1
    return volume


def class_volumes(
    segmentation: np.ndarray,
    number_of_classes: int,
    voxel_volume: float = 1.0,
) -> np.ndarray:
    """
    Volume assigned to each class in a label volume.

    Args:
        segmentation: Label volume from labels_to_volume.
        number_of_classes: Number of classes K.
        voxel_volume: Volume of one voxel (e.g. mm^3).

    Returns:
        (K,) array of class volumes.
    """
    counts = np.bincount(segmentation.ravel(), minlength=number_of_classes + 1)
    return counts[1 : number_of_classes + 1] * voxel_volume
