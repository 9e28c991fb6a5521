"""Visualization tools."""

from .plots import plot_convergence, plot_mixture_fit

__all__ = ["plot_convergence", "plot_mixture_fit"]
