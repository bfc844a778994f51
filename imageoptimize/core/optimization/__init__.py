"""Perceptual scoring, quality search and codec selection."""

from .optimization_engine import ImageOptimizer, optimize_image
from .quality_analyzer import PerceptualScorer
from .quality_search import EncodeCandidate, QualitySearch, SearchStep
from .selection import select_candidate

__all__ = [
    "ImageOptimizer",
    "optimize_image",
    "PerceptualScorer",
    "QualitySearch",
    "EncodeCandidate",
    "SearchStep",
    "select_candidate",
]
