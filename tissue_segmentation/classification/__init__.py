"""EM/GMM tissue classification engine."""

from .parameters import GaussianParameterSet
from .posteriors import PosteriorField
from .engine import EMEngine
from .convergence import (
    ConvergenceMonitor,
    ConvergenceReport,
    ConvergenceState,
    run_em,
)
from .decision import class_volumes, labels_to_volume, max_posterior_labels

__all__ = [
    "GaussianParameterSet",
    "PosteriorField",
    "EMEngine",
    "ConvergenceMonitor",
    "ConvergenceReport",
    "ConvergenceState",
    "run_em",
    "class_volumes",
    "labels_to_volume",
    "max_posterior_labels",
]
