"""
Per-voxel class membership probabilities.
"""

import numpy as np


class PosteriorField:
    """
    (M, K) posterior probabilities over the non-padding voxels of a grid.

    ``generation`` counts the E-steps that have written the field, so a
    consumer can tell whether it is reading fresh values.
    """

    def __init__(self, mask: np.ndarray, number_of_classes: int) -> None:
        self._mask = mask
        self._values = np.zeros(
            (int(mask.sum()), number_of_classes), dtype=np.float64
        )
        self.generation = 0

    @property
    def values(self) -> np.ndarray:
        return self._values

    @property
    def mask(self) -> np.ndarray:
        return self._mask

    @property
    def number_of_classes(self) -> int:
        return self._values.shape[1]

    def update(self, posteriors: np.ndarray) -> None:
        """Overwrite every row with new posteriors."""
        if posteriors.shape != self._values.shape:
            raise ValueError(
                f"Expected posteriors of shape {self._values.shape}, "
                f"got {posteriors.shape}"
            )
        self._values[...] = posteriors
        self.generation += 1

    def class_map(self, class_index: int) -> np.ndarray:
        """
        Posterior of one class on the full grid.

        Args:
            class_index: Class to export.

        Returns:
            Float64 array in grid shape, 0 at padding voxels.

        Raises:
            IndexError: If class_index is out of range.
        """
        if not 0 <= class_index < self.number_of_classes:
            raise IndexError(
                f"Class {class_index} out of range for "
                f"{self.number_of_classes} classes"
            )
        volume = np.zeros(self._mask.shape, dtype=np.float64)
        volume[self._mask] = self._values[:, class_index]
        return volume
