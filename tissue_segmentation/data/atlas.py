"""
Spatial prior probability atlases.

An AtlasSet holds one prior grid per tissue class plus an optional
background ("other") class, all on the voxel grid of the image.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from .preprocessing.resampler import load_on_grid
from .volume import VoxelGrid

logger = logging.getLogger(__name__)


class AtlasSet:
    """
    Ordered collection of per-class prior grids.

    The last class is the background when one is present, either supplied
    explicitly or synthesized as the complement of the tissue priors.
    """

    def __init__(
        self,
        tissues: Sequence[np.ndarray],
        background: Optional[np.ndarray] = None,
        synthesize_background: bool = True,
        names: Optional[Sequence[str]] = None,
    ) -> None:
        """
        Initialize atlas set.

        Args:
            tissues: One prior grid per tissue class, all with the same shape.
            background: Optional explicit background prior.
            synthesize_background: If no background is given, build one as
                clip(1 - sum(tissues), 0, 1).
            names: Optional class names, one per class including background.

        Raises:
            ValueError: If no tissue grids are given or shapes disagree.
        """
        if len(tissues) == 0:
            raise ValueError("At least one tissue atlas is required")

        grids = [self._as_prior(t, f"atlas {i}") for i, t in enumerate(tissues)]
        shape = grids[0].shape
        for i, grid in enumerate(grids):
            if grid.ndim != 3:
                raise ValueError(f"Atlas {i} is {grid.ndim}D, expected 3D")
            if grid.shape != shape:
                raise ValueError(
                    f"Atlas {i} has shape {grid.shape}, expected {shape}"
                )

        self._number_of_tissues = len(grids)

        if background is not None:
            background = self._as_prior(background, "background")
            if background.shape != shape:
                raise ValueError(
                    f"Background has shape {background.shape}, expected {shape}"
                )
            grids.append(background)
        elif synthesize_background:
            background = np.clip(1.0 - np.sum(grids, axis=0), 0.0, 1.0)
            grids.append(background)

        for grid in grids:
            grid.setflags(write=False)
        self._grids: Tuple[np.ndarray, ...] = tuple(grids)
        self._shape = shape

        if names is not None and len(names) != len(self._grids):
            raise ValueError(
                f"Got {len(names)} names for {len(self._grids)} classes"
            )
        self._names = tuple(names) if names is not None else None

    @staticmethod
    def _as_prior(grid: np.ndarray, label: str) -> np.ndarray:
        grid = np.array(grid, dtype=np.float64)
        if grid.size and (grid.min() < 0.0 or grid.max() > 1.0):
            logger.warning(f"Values of {label} outside [0, 1], clipping")
            grid = np.clip(grid, 0.0, 1.0)
        return grid

    @property
    def shape(self) -> Tuple[int, int, int]:
        return self._shape

    @property
    def number_of_tissues(self) -> int:
        """Number of tissue classes, excluding background."""
        return self._number_of_tissues

    @property
    def number_of_classes(self) -> int:
        """Number of classes the engine fits, including background."""
        return len(self._grids)

    @property
    def has_background(self) -> bool:
        return len(self._grids) > self._number_of_tissues

    @property
    def background_index(self) -> Optional[int]:
        return len(self._grids) - 1 if self.has_background else None

    @property
    def names(self) -> Optional[Tuple[str, ...]]:
        return self._names

    def __len__(self) -> int:
        return len(self._grids)

    def __getitem__(self, index: int) -> np.ndarray:
        return self._grids[index]

    def __iter__(self):
        return iter(self._grids)

    def priors(self, mask: np.ndarray) -> np.ndarray:
        """
        Relative prior weights at the selected voxels.

        Args:
            mask: Boolean grid selecting the voxels.

        Returns:
            (M, K) array, each row summing to 1. Rows whose priors are all
            zero get the uniform prior 1/K.
        """
        if mask.shape != self._shape:
            raise ValueError(
                f"Mask has shape {mask.shape}, atlas shape is {self._shape}"
            )

        priors = np.stack([grid[mask] for grid in self._grids], axis=1)
        totals = priors.sum(axis=1, keepdims=True)
        empty = totals[:, 0] <= 0.0

        if np.any(empty):
            logger.debug(f"{int(empty.sum())} voxels with zero prior, using uniform")

        np.divide(priors, totals, out=priors, where=totals > 0.0)
        priors[empty] = 1.0 / self.number_of_classes
        return priors


def load_atlas_set(
    atlas_paths: Sequence[Union[str, Path]],
    grid: VoxelGrid,
    background_path: Optional[Union[str, Path]] = None,
    synthesize_background: bool = True,
    resample: bool = True,
    names: Optional[List[str]] = None,
) -> AtlasSet:
    """
    Read probability atlases from NIfTI files onto the image grid.

    Args:
        atlas_paths: One path per tissue class, in class order.
        grid: Image grid the atlases must align with.
        background_path: Optional explicit background prior.
        synthesize_background: Synthesize a background if none is given.
        resample: Resample atlases that lie on a different grid.
        names: Optional class names.

    Returns:
        AtlasSet aligned with the grid.
    """
    tissues = []
    for i, path in enumerate(atlas_paths):
        logger.info(f"Atlas {i} = {path}")
        tissues.append(load_on_grid(path, grid.shape, grid.affine, resample=resample))

    background = None
    if background_path is not None:
        logger.info(f"Background = {background_path}")
        background = load_on_grid(
            background_path, grid.shape, grid.affine, resample=resample
        )

    return AtlasSet(
        tissues,
        background=background,
        synthesize_background=synthesize_background,
        names=names,
    )
