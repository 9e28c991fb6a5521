"""
Fit visualization utilities.

Provides functions for plotting the fitted intensity mixture and the EM
convergence history.
"""

from pathlib import Path
from typing import Optional, Sequence, Union

import matplotlib.pyplot as plt
import numpy as np
from scipy.stats import norm

from ..classification.parameters import GaussianParameterSet


def plot_mixture_fit(
    intensities: np.ndarray,
    parameters: GaussianParameterSet,
    class_names: Optional[Sequence[str]] = None,
    bins: int = 128,
    output_path: Optional[Union[str, Path]] = None,
    show: bool = True,
    figsize: tuple = (10, 6),
) -> plt.Figure:
    """
    Plot the intensity histogram with the fitted Gaussian components.

    Args:
        intensities: Non-padding intensities.
        parameters: Fitted parameters.
        class_names: Optional legend label per class.
        bins: Number of histogram bins.
        output_path: Optional path to save figure.
        show: Whether to display the plot.
        figsize: Figure size (width, height).

    Returns:
        Matplotlib Figure object.
    """
    fig, ax = plt.subplots(figsize=figsize)

    ax.hist(
        intensities,
        bins=bins,
        density=True,
        color="gray",
        alpha=0.4,
        label="Intensity histogram",
    )

    low, high = float(np.min(intensities)), float(np.max(intensities))
    margin = 0.05 * (high - low) if high > low else 1.0
    x = np.linspace(low - margin, high + margin, 1000)

    mixture = np.zeros_like(x)
    for index, (mean, variance, weight) in enumerate(parameters):
        component = weight * norm.pdf(x, mean, np.sqrt(variance))
        mixture += component
        name = class_names[index] if class_names else f"Class {index}"
        ax.plot(x, component, linewidth=2, label=f"{name} (μ={mean:.1f})")

    ax.plot(x, mixture, "k--", linewidth=2, label="Mixture")

    ax.set_xlabel("Intensity")
    ax.set_ylabel("Density")
    ax.set_title("Gaussian Mixture Fit")
    ax.legend(loc="best")
    ax.grid(True, alpha=0.3)

    if output_path:
        fig.savefig(output_path, dpi=150, bbox_inches="tight")

    if show:
        plt.show()

    return fig


def plot_convergence(
    history: Sequence[float],
    tolerance: Optional[float] = None,
    output_path: Optional[Union[str, Path]] = None,
    show: bool = True,
    figsize: tuple = (8, 5),
) -> plt.Figure:
    """
    Plot relative log-likelihood change per EM iteration.

    Args:
        history: Relative change of each iteration.
        tolerance: Optional convergence threshold drawn as a line.
        output_path: Optional path to save figure.
        show: Whether to display the plot.
        figsize: Figure size.

    Returns:
        Matplotlib Figure object.
    """
    fig, ax = plt.subplots(figsize=figsize)

    iterations = np.arange(1, len(history) + 1)
    # Zero changes cannot be drawn on a log axis
    values = np.maximum(np.asarray(history, dtype=float), np.finfo(float).tiny)

    ax.plot(iterations, values, marker="o", color="#1f77b4", linewidth=2)
    if tolerance is not None and tolerance > 0:
        ax.axhline(tolerance, color="#d62728", linestyle="--", label="Tolerance")
        ax.legend(loc="best")

    ax.set_yscale("log")
    ax.set_xlabel("Iteration")
    ax.set_ylabel("Relative change")
    ax.set_title("EM Convergence")
    ax.grid(True, alpha=0.3)

    if output_path:
        fig.savefig(output_path, dpi=150, bbox_inches="tight")

    if show:
        plt.show()

    return fig
