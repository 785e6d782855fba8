from __future__ import annotations

from pathlib import Path
from typing import Any

import numpy as np
from numpy.typing import NDArray

from .base import RangeFilteredEngine, clip_range
from ..errors import EngineError
from ..types import Candidate


class BruteForceEngine(RangeFilteredEngine):
    """Exact squared-L2 scan over the points whose position falls in the range.

    Serves as the reference engine: its recall is 1.0 whenever the groundtruth
    was computed in the same identifier space.
    """

    name = "bruteforce"
    module_name = "numpy"

    def build_and_save(
        self,
        data: NDArray[np.float32],
        *,
        M: int,
        ef_construction: int,
        threads: int,
        index_path: Path,
    ) -> None:
        del threads
        if data.ndim != 2:
            raise EngineError(f"{self.name}: data must be a 2-D array")
        try:
            with Path(index_path).open("wb") as f:
                np.savez(
                    f,
                    n_points=np.int64(data.shape[0]),
                    dim=np.int64(data.shape[1]),
                    M=np.int64(M),
                    ef_construction=np.int64(ef_construction),
                )
        except OSError as exc:
            raise EngineError(f"{self.name}: cannot write index to {index_path}: {exc}") from exc

    def load_index(self, data: NDArray[np.float32], *, index_path: Path, M: int) -> Any:
        del M
        try:
            with np.load(Path(index_path)) as meta:
                n_points = int(meta["n_points"])
                dim = int(meta["dim"])
        except (OSError, KeyError, ValueError) as exc:
            raise EngineError(f"{self.name}: cannot load index {index_path}: {exc}") from exc
        if data.shape != (n_points, dim):
            raise EngineError(
                f"{self.name}: index {index_path} was built for {n_points}x{dim} points, "
                f"data has shape {data.shape}"
            )
        return {"data": data, "sq_norms": np.sum(data * data, axis=1)}

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
        del ef_search, edge_limit
        data: NDArray[np.float32] = index["data"]
        window = clip_range(low, high, data.shape[0])
        if window is None:
            return []
        start, stop = window[0], window[1] + 1
        q = np.asarray(query, dtype=np.float32).reshape(-1)
        # Squared Euclidean distance.
        distances = index["sq_norms"][start:stop] - 2.0 * (data[start:stop] @ q) + float(q @ q)
        k = min(int(top_k), distances.shape[0])
        partial = np.argpartition(distances, kth=k - 1)[:k]
        order = partial[np.argsort(distances[partial], kind="stable")]
        return [(float(distances[i]), int(start + i)) for i in order]


__all__ = ["BruteForceEngine"]
