from .base import RangeFilteredEngine, clip_range
from .bruteforce import BruteForceEngine
from .hnswlib import HnswlibEngine
from .registry import ENGINES, resolve_engine

__all__ = [
    "BruteForceEngine",
    "ENGINES",
    "HnswlibEngine",
    "RangeFilteredEngine",
    "clip_range",
    "resolve_engine",
]
