from __future__ import annotations

import importlib
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import numpy as np
from numpy.typing import NDArray

from ..types import Candidate


class RangeFilteredEngine(ABC):
    """Narrow call surface the harness needs from a range-filtered ANN engine.

    Identifiers returned by :meth:`search` live in the engine's storage order.
    The range key of a point is its storage position, so ``low``/``high``
    bound positions in that order, inclusive.
    """

    name: str
    module_name: str

    @classmethod
    def availability(cls) -> tuple[bool, str | None]:
        try:
            importlib.import_module(cls.module_name)
            return True, None
        except Exception as exc:  # pragma: no cover - depends on environment
            return False, f"{cls.module_name} import failed: {exc}"

    @abstractmethod
    def build_and_save(
        self,
        data: NDArray[np.float32],
        *,
        M: int,
        ef_construction: int,
        threads: int,
        index_path: Path,
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    def load_index(self, data: NDArray[np.float32], *, index_path: Path, M: int) -> Any:
        raise NotImplementedError

    @abstractmethod
    def search(
        self,
        index: Any,
        query: NDArray[np.float32],
        *,
        low: int,
        high: int,
        ef_search: int,
        top_k: int,
        edge_limit: int,
    ) -> list[Candidate]:
        raise NotImplementedError


def clip_range(low: int, high: int, n_points: int) -> tuple[int, int] | None:
    """Clamp an inclusive position range to ``[0, n_points)``; ``None`` if empty."""
    low = max(0, int(low))
    high = min(n_points - 1, int(high))
    if high < low:
        return None
    return low, high


__all__ = ["RangeFilteredEngine", "clip_range"]
