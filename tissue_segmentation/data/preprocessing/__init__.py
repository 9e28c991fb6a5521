"""Atlas preprocessing utilities."""

from .resampler import has_grid_mismatch, load_on_grid, resample_to_grid

__all__ = ["has_grid_mismatch", "load_on_grid", "resample_to_grid"]
