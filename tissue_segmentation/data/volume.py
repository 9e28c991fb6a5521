"""
Intensity volume with voxel-to-world geometry and a padding mask.

The grid is read-only for the classification code: the data array is
stored as a non-writeable copy so estimation steps cannot alter it.
"""

from typing import Optional, Tuple

import numpy as np


class VoxelGrid:
    """
    3D scalar intensity volume.

    Voxels equal to ``padding_value`` are excluded from classification.
    A ``padding_value`` of None classifies every voxel.
    """

    def __init__(
        self,
        data: np.ndarray,
        affine: Optional[np.ndarray] = None,
        padding_value: Optional[float] = None,
    ) -> None:
        """
        Initialize grid.

        Args:
            data: 3D intensity array (nx, ny, nz).
            affine: 4x4 voxel-to-world matrix. Identity if None.
            padding_value: Sentinel intensity marking excluded voxels.

        Raises:
            ValueError: If data is not 3D or affine is not 4x4.
        """
        data = np.array(data, dtype=np.float64)
        if data.ndim != 3:
            raise ValueError(f"Expected 3D volume, got {data.ndim}D")

        if affine is None:
            affine = np.eye(4)
        affine = np.array(affine, dtype=np.float64)
        if affine.shape != (4, 4):
            raise ValueError(f"Expected 4x4 affine, got {affine.shape}")

        data.setflags(write=False)
        affine.setflags(write=False)

        self._data = data
        self._affine = affine
        self._padding_value = padding_value

        if padding_value is None:
            mask = np.ones(data.shape, dtype=bool)
        else:
            mask = data != padding_value
        mask.setflags(write=False)
        self._mask = mask

    @property
    def data(self) -> np.ndarray:
        return self._data

    @property
    def affine(self) -> np.ndarray:
        return self._affine

    @property
    def padding_value(self) -> Optional[float]:
        return self._padding_value

    @property
    def shape(self) -> Tuple[int, int, int]:
        return self._data.shape

    @property
    def mask(self) -> np.ndarray:
        """Boolean array, True where the voxel takes part in classification."""
        return self._mask

    @property
    def number_of_voxels(self) -> int:
        """Number of non-padding voxels."""
        return int(self._mask.sum())

    @property
    def spacing(self) -> Tuple[float, float, float]:
        """Voxel size along each axis, from the affine column norms."""
        return tuple(float(s) for s in np.linalg.norm(self._affine[:3, :3], axis=0))

    @property
    def intensities(self) -> np.ndarray:
        """1D array of non-padding intensities in C order."""
        return self._data[self._mask]

    def __repr__(self) -> str:
        return (
            f"VoxelGrid(shape={self.shape}, padding_value={self._padding_value}, "
            f"voxels={self.number_of_voxels})"
        )
