"""Live pipeline: the single-owner aggregator and the feed runner around it."""

from .aggregator import Aggregator
from .runner import ObserverRunner

__all__ = [
    "Aggregator",
    "ObserverRunner",
]
