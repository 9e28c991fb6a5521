"""
Expectation-Maximization fit of an atlas-guided Gaussian mixture.

The engine alternates E-steps (posterior update) and M-steps (parameter
update) over the non-padding voxels of an intensity grid, weighting each
class by its spatial prior.
"""

import logging
from typing import Optional

import numpy as np

from ..data.atlas import AtlasSet
from ..data.volume import VoxelGrid
from .decision import labels_to_volume, max_posterior_labels
from .parameters import (
    DEFAULT_VARIANCE_FLOOR,
    DEFAULT_WEIGHT_FLOOR,
    GaussianParameterSet,
    weighted_moments,
)
from .posteriors import PosteriorField

logger = logging.getLogger(__name__)

_TINY = np.finfo(np.float64).tiny


class EMEngine:
    """
    EM classifier for one intensity grid and its atlas set.

    The grid and atlases are borrowed and never modified. The engine owns
    the Gaussian parameters and the posterior field.

    Typical use::

        engine = EMEngine(grid, atlases)
        engine.initialize()
        report = run_em(engine)
        segmentation = engine.decide(exclude_background=True)
    """

    def __init__(
        self,
        grid: VoxelGrid,
        atlases: AtlasSet,
        variance_floor: float = DEFAULT_VARIANCE_FLOOR,
        weight_floor: float = DEFAULT_WEIGHT_FLOOR,
        separation_tolerance: float = 1e-3,
    ) -> None:
        """
        Initialize engine.

        Args:
            grid: Intensity grid; its padding value selects the voxels.
            atlases: Spatial priors on the same grid.
            variance_floor: Minimum class variance.
            weight_floor: Minimum mixing weight.
            separation_tolerance: Fraction of the intensity range below which
                two atlas-weighted means count as identical.

        Raises:
            ValueError: If the atlas shape differs from the grid or the grid
                has no non-padding voxels.
        """
        if atlases.shape != grid.shape:
            raise ValueError(
                f"Atlas shape {atlases.shape} does not match image shape {grid.shape}"
            )
        if grid.number_of_voxels == 0:
            raise ValueError("Image has no voxels outside the padding value")
        if variance_floor <= 0 or weight_floor <= 0:
            raise ValueError("Variance and weight floors must be positive")

        self.grid = grid
        self.atlases = atlases
        self.variance_floor = variance_floor
        self.weight_floor = weight_floor
        self.separation_tolerance = separation_tolerance

        self._intensities: Optional[np.ndarray] = None
        self._priors: Optional[np.ndarray] = None
        self._parameters: Optional[GaussianParameterSet] = None
        self._posteriors: Optional[PosteriorField] = None
        self._consumed_generation = 0
        self._log_likelihood: Optional[float] = None

    @property
    def number_of_classes(self) -> int:
        return self.atlases.number_of_classes

    @property
    def is_initialized(self) -> bool:
        return self._parameters is not None

    @property
    def parameters(self) -> GaussianParameterSet:
        """Copy of the current Gaussian parameters."""
        self._require_initialized()
        return self._parameters.copy()

    @property
    def posteriors(self) -> np.ndarray:
        """Read-only view of the (M, K) posterior field."""
        self._require_initialized()
        view = self._posteriors.values.view()
        view.setflags(write=False)
        return view

    @property
    def log_likelihood(self) -> Optional[float]:
        return self._log_likelihood

    def _require_initialized(self) -> None:
        if self._parameters is None:
            raise RuntimeError("EMEngine.initialize() must be called first")

    def initialize(self) -> GaussianParameterSet:
        """
        Estimate starting parameters from the atlas.

        Each class gets the prior-weighted mean and variance of the
        non-padding intensities, and a mixing weight equal to its average
        prior. Allocates a zero posterior field.

        Returns:
            Copy of the initial parameters.
        """
        mask = self.grid.mask
        intensities = self.grid.intensities
        priors = self.atlases.priors(mask)
        number_of_voxels = len(intensities)

        min_mass = self.weight_floor * number_of_voxels
        masses, means, variances = weighted_moments(
            intensities, priors, min_mass=min_mass
        )

        for index in np.flatnonzero(masses <= min_mass):
            logger.warning(
                f"Class {index} has no atlas support, using variance/weight floor"
            )

        parameters = GaussianParameterSet(means, variances, masses / number_of_voxels)
        self._spread_indistinct_means(parameters, intensities, masses > min_mass)

        floored = parameters.apply_floors(self.variance_floor, self.weight_floor)
        if floored:
            logger.warning(f"Floor engaged at initialization for classes {floored}")

        self._intensities = intensities
        self._priors = priors
        self._parameters = parameters
        self._posteriors = PosteriorField(mask, self.number_of_classes)
        self._consumed_generation = 0
        self._log_likelihood = self._compute_log_likelihood()

        logger.info(
            f"Initialized {self.number_of_classes} classes over "
            f"{number_of_voxels} voxels"
        )
        logger.debug("Initial parameters:\n" + parameters.to_text())
        return parameters.copy()

    def _spread_indistinct_means(
        self,
        parameters: GaussianParameterSet,
        intensities: np.ndarray,
        live: np.ndarray,
    ) -> None:
        """
        Spread groups of live classes whose atlas-weighted means coincide.

        Live classes are ranked by mean and split into groups of neighbours
        closer than ``separation_tolerance`` times the intensity range. Each
        group of two or more is spread evenly, in rank order, over its share
        of the range: bounded by the midpoints to the neighbouring groups, or
        by the intensity extremes at either end. Classes outside such groups
        keep their atlas-weighted moments.
        """
        live_indices = np.flatnonzero(live)
        if len(live_indices) < 2:
            return

        low, high = float(intensities.min()), float(intensities.max())
        span = high - low
        if span <= 0:
            return

        order = live_indices[
            np.argsort(parameters.means[live_indices], kind="stable")
        ]
        separated = np.diff(parameters.means[order]) > self.separation_tolerance * span
        if np.all(separated):
            return

        groups = np.split(order, np.flatnonzero(separated) + 1)
        centers = [float(np.mean(parameters.means[group])) for group in groups]

        for position, group in enumerate(groups):
            count = len(group)
            if count < 2:
                continue

            at_low = position == 0
            at_high = position == len(groups) - 1
            lower = low if at_low else 0.5 * (centers[position - 1] + centers[position])
            upper = high if at_high else 0.5 * (centers[position] + centers[position + 1])

            # Interior bounds belong to the neighbouring group
            points = np.linspace(lower, upper, count + (not at_low) + (not at_high))
            if not at_low:
                points = points[1:]
            if not at_high:
                points = points[:-1]

            logger.info(
                f"Atlas-weighted means of classes {group.tolist()} are not "
                f"separable, spreading them over [{lower:g}, {upper:g}]"
            )
            parameters.means[group] = points
            parameters.variances[group] = ((upper - lower) / count) ** 2

    def _mixture_density(self, parameters: GaussianParameterSet) -> np.ndarray:
        """Unnormalized posteriors prior * likelihood * weight, shape (M, K)."""
        return (
            self._priors
            * parameters.likelihood(self._intensities)
            * parameters.weights[np.newaxis, :]
        )

    def _compute_log_likelihood(self) -> float:
        density = self._mixture_density(self._parameters).sum(axis=1)
        return float(np.sum(np.log(np.maximum(density, _TINY))))

    def e_step(self) -> None:
        """
        Recompute the posterior of every non-padding voxel.

        Voxels where every class has zero density receive the uniform
        posterior 1/K.
        """
        self._require_initialized()

        density = self._mixture_density(self._parameters)
        totals = density.sum(axis=1, keepdims=True)
        empty = totals[:, 0] <= 0.0

        posteriors = np.divide(
            density, totals, out=np.zeros_like(density), where=totals > 0.0
        )
        if np.any(empty):
            posteriors[empty] = 1.0 / self.number_of_classes
            logger.debug(f"{int(empty.sum())} voxels outside every class, uniform")

        self._posteriors.update(posteriors)

    def m_step(self) -> None:
        """
        Re-estimate means, variances and weights from the posteriors.

        Raises:
            RuntimeError: If no E-step ran since the last M-step.
        """
        self._require_initialized()
        generation = self._posteriors.generation
        if generation == self._consumed_generation:
            raise RuntimeError("M-step requires a fresh E-step")

        posteriors = self._posteriors.values
        number_of_voxels = len(self._intensities)
        min_mass = self.weight_floor * number_of_voxels

        masses, means, variances = weighted_moments(
            self._intensities,
            posteriors,
            fallback_mean=self._parameters.means,
            min_mass=min_mass,
        )

        parameters = GaussianParameterSet(means, variances, masses / number_of_voxels)
        floored = parameters.apply_floors(self.variance_floor, self.weight_floor)
        if floored:
            logger.debug(f"Floor engaged in M-step for classes {floored}")

        self._parameters = parameters
        self._consumed_generation = generation

    def iterate(self, iteration: int, nominal_iterations: Optional[int] = None) -> float:
        """
        Run one E-step and one M-step.

        Args:
            iteration: 1-based iteration index, used for reporting.
            nominal_iterations: Expected iteration count, used for reporting.

        Returns:
            Relative change of the log-likelihood against the previous
            iteration.
        """
        self._require_initialized()

        if nominal_iterations is None:
            logger.info(f"Iteration = {iteration}")
        else:
            logger.info(f"Iteration = {iteration} / {nominal_iterations}")

        self.e_step()
        self.m_step()

        previous = self._log_likelihood
        current = self._compute_log_likelihood()
        self._log_likelihood = current

        change = abs(current - previous) / max(abs(previous), _TINY)
        logger.debug(
            f"log-likelihood={current:.6f} relative change={change:.6g}\n"
            + self._parameters.to_text()
        )
        return change

    def decide(self, exclude_background: bool = False) -> np.ndarray:
        """
        Label each non-padding voxel with its most probable class.

        Args:
            exclude_background: Never assign the background class; such
                voxels get their second most probable class.

        Returns:
            int16 label volume: class index + 1, and 0 at padding voxels.
        """
        self._require_initialized()

        exclude = self.atlases.background_index if exclude_background else None
        labels = max_posterior_labels(self._posteriors.values, exclude=exclude)
        return labels_to_volume(labels, self.grid.mask)

    def export_probability_map(self, class_index: int) -> np.ndarray:
        """
        Posterior probability of one class on the full grid.

        Args:
            class_index: 0-based class index.

        Returns:
            Float64 copy in grid shape, 0 at padding voxels.
        """
        self._require_initialized()
        return self._posteriors.class_map(class_index)

    def export_parameters(self) -> str:
        """Textual report of (mean, variance, weight) per class."""
        self._require_initialized()
        return self._parameters.to_text()
