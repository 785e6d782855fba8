from __future__ import annotations

from pathlib import Path
from typing import Any

import numpy as np
from numpy.typing import NDArray

from .base import RangeFilteredEngine, clip_range
from ..errors import EngineError
from ..types import Candidate


class HnswlibEngine(RangeFilteredEngine):
    """HNSW graph from hnswlib, range restriction applied through its label filter."""

    name = "hnswlib"
    module_name = "hnswlib"

    def build_and_save(
        self,
        data: NDArray[np.float32],
        *,
        M: int,
        ef_construction: int,
        threads: int,
        index_path: Path,
    ) -> None:
        import hnswlib

        index = hnswlib.Index(space="l2", dim=int(data.shape[1]))
        index.init_index(max_elements=int(data.shape[0]), ef_construction=int(ef_construction), M=int(M))
        index.add_items(data, np.arange(data.shape[0], dtype=np.int64), num_threads=int(threads))
        try:
            index.save_index(str(index_path))
        except RuntimeError as exc:
            raise EngineError(f"{self.name}: cannot write index to {index_path}: {exc}") from exc

    def load_index(self, data: NDArray[np.float32], *, index_path: Path, M: int) -> Any:
        import hnswlib

        del M
        index = hnswlib.Index(space="l2", dim=int(data.shape[1]))
        try:
            index.load_index(str(index_path), max_elements=int(data.shape[0]))
        except RuntimeError as exc:
            raise EngineError(f"{self.name}: cannot load index {index_path}: {exc}") from exc
        if index.get_current_count() != data.shape[0]:
            raise EngineError(
                f"{self.name}: index {index_path} holds {index.get_current_count()} points, "
                f"data has {data.shape[0]}"
            )
        index.set_num_threads(1)
        return index

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
        del edge_limit
        window = clip_range(low, high, int(index.get_current_count()))
        if window is None:
            return []
        lo, hi = window
        k = min(int(top_k), hi - lo + 1)

        def in_range(label: int) -> bool:
            return lo <= label <= hi

        q = np.asarray(query, dtype=np.float32).reshape(1, -1)
        index.set_ef(max(int(ef_search), k))
        try:
            labels, distances = index.knn_query(q, k=k, filter=in_range)
        except RuntimeError:
            # Narrow ranges can starve the beam; widen ef to the range size once.
            index.set_ef(max(int(ef_search), hi - lo + 1))
            try:
                labels, distances = index.knn_query(q, k=k, filter=in_range)
            except RuntimeError as exc:
                raise EngineError(f"{self.name}: search in [{lo}, {hi}] returned fewer than {k} results") from exc
        return [(float(d), int(label)) for d, label in zip(distances[0], labels[0])]


__all__ = ["HnswlibEngine"]
