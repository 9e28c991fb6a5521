"""
Tissue Segmentation - Atlas-guided EM classification

A package for unsupervised tissue classification of 3D medical images:
- Spatial prior atlases with background synthesis and resampling
- Gaussian mixture fit by Expectation-Maximization
- Convergence control with a hard iteration cap
- Hard segmentation and per-class probability maps
"""

__version__ = "1.0.0"
