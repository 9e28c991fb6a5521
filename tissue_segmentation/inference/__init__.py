"""Classification pipeline components."""

from .classifier import ClassificationResult, TissueClassifier

__all__ = ["ClassificationResult", "TissueClassifier"]
