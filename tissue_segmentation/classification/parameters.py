"""
Per-class Gaussian parameters of the intensity mixture model.
"""

from typing import Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.stats import norm

# Floors keep every component a proper density
DEFAULT_VARIANCE_FLOOR = 1e-6
DEFAULT_WEIGHT_FLOOR = 1e-6


class GaussianParameterSet:
    """
    Mean, variance and mixing weight for each of K classes.

    Entries are indexed 0..K-1 in atlas class order.
    """

    def __init__(
        self,
        means: Sequence[float],
        variances: Sequence[float],
        weights: Sequence[float],
    ) -> None:
        means = np.array(means, dtype=np.float64)
        variances = np.array(variances, dtype=np.float64)
        weights = np.array(weights, dtype=np.float64)

        if not (means.shape == variances.shape == weights.shape) or means.ndim != 1:
            raise ValueError(
                f"Parameter shapes differ: means {means.shape}, "
                f"variances {variances.shape}, weights {weights.shape}"
            )

        self.means = means
        self.variances = variances
        self.weights = weights

    @classmethod
    def zeros(cls, number_of_classes: int) -> "GaussianParameterSet":
        return cls(
            np.zeros(number_of_classes),
            np.zeros(number_of_classes),
            np.zeros(number_of_classes),
        )

    def __len__(self) -> int:
        return len(self.means)

    def __iter__(self) -> Iterator[Tuple[float, float, float]]:
        for mean, variance, weight in zip(self.means, self.variances, self.weights):
            yield float(mean), float(variance), float(weight)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GaussianParameterSet):
            return NotImplemented
        return (
            np.array_equal(self.means, other.means)
            and np.array_equal(self.variances, other.variances)
            and np.array_equal(self.weights, other.weights)
        )

    def copy(self) -> "GaussianParameterSet":
        return GaussianParameterSet(
            self.means.copy(), self.variances.copy(), self.weights.copy()
        )

    def as_vector(self) -> np.ndarray:
        """Concatenated (means, variances, weights)."""
        return np.concatenate([self.means, self.variances, self.weights])

    @property
    def standard_deviations(self) -> np.ndarray:
        return np.sqrt(self.variances)

    def likelihood(self, intensities: np.ndarray) -> np.ndarray:
        """
        Gaussian density of each intensity under each class.

        Args:
            intensities: 1D array of M intensities.

        Returns:
            (M, K) array of densities.
        """
        return norm.pdf(
            intensities[:, np.newaxis],
            loc=self.means[np.newaxis, :],
            scale=self.standard_deviations[np.newaxis, :],
        )

    def apply_floors(
        self,
        variance_floor: float = DEFAULT_VARIANCE_FLOOR,
        weight_floor: float = DEFAULT_WEIGHT_FLOOR,
    ) -> List[int]:
        """
        Clamp variances and weights from below, then renormalize weights.

        Args:
            variance_floor: Minimum variance.
            weight_floor: Minimum mixing weight before renormalization.

        Returns:
            Sorted indices of classes where a floor was engaged.
        """
        low_variance = ~(self.variances >= variance_floor)
        low_weight = ~(self.weights >= weight_floor)

        self.variances[low_variance] = variance_floor
        self.weights[low_weight] = weight_floor
        self.weights /= self.weights.sum()

        return sorted(np.flatnonzero(low_variance | low_weight).tolist())

    def to_text(self, precision: int = 6) -> str:
        """
        Stable textual listing in class-index order.

        Args:
            precision: Decimal places for each value.

        Returns:
            Multi-line report.
        """
        lines = [f"Number of classes: {len(self)}"]
        for index, (mean, variance, weight) in enumerate(self):
            lines.append(
                f"Class {index}: mean={mean:.{precision}f} "
                f"variance={variance:.{precision}f} weight={weight:.{precision}f}"
            )
        return "\n".join(lines) + "\n"

    def __repr__(self) -> str:
        return (
            f"GaussianParameterSet(means={self.means.tolist()}, "
            f"variances={self.variances.tolist()}, weights={self.weights.tolist()})"
        )


def weighted_moments(
    intensities: np.ndarray,
    weights: np.ndarray,
    fallback_mean: Optional[Union[float, np.ndarray]] = None,
    min_mass: float = 0.0,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Per-class weighted mean and variance of intensities.

    Args:
        intensities: 1D array of M intensities.
        weights: (M, K) non-negative weights.
        fallback_mean: Mean (scalar or per class) used for classes with
            mass <= min_mass. Defaults to the unweighted mean.
        min_mass: Mass at or below which a class counts as empty.

    Returns:
        Tuple of (masses, means, variances), each of length K. Empty classes
        get the fallback mean and zero variance.
    """
    masses = weights.sum(axis=0)
    empty = masses <= min_mass
    safe_masses = np.where(empty, 1.0, masses)

    if fallback_mean is None:
        fallback_mean = float(intensities.mean())

    means = (weights * intensities[:, np.newaxis]).sum(axis=0) / safe_masses
    means = np.where(empty, fallback_mean, means)

    deviations = intensities[:, np.newaxis] - means[np.newaxis, :]
    variances = (weights * deviations ** 2).sum(axis=0) / safe_masses
    variances = np.where(empty, 0.0, variances)

    return masses, means, variances
