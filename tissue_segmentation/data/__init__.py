"""Input volumes and spatial prior atlases."""

from .volume import VoxelGrid
from .atlas import AtlasSet, load_atlas_set

__all__ = ["VoxelGrid", "AtlasSet", "load_atlas_set"]
