from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

VectorSet = list[NDArray[np.float32]]
IntVectorSet = list[NDArray[np.int32]]
RangePredicate = tuple[int, int]
IdentifierMapping = NDArray[np.int64]
Candidate = tuple[float, int]


@dataclass(slots=True)
class QueryEvaluation:
    true_positives: int
    num_queries: int
    top_k: int
    elapsed_s: float

    @property
    def recall(self) -> float:
        return float(self.true_positives / (self.num_queries * self.top_k))

    @property
    def qps(self) -> float:
        if self.elapsed_s <= 0.0:
            return float("inf")
        return float(self.num_queries / self.elapsed_s)


@dataclass(slots=True)
class ResourceSample:
    peak_threads: int
    pid: int
    status_lines: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class MetricsReport:
    mode: str
    elapsed_s: float
    peak_threads: int
    pid: int
    status_lines: tuple[str, ...] = ()
    qps: float | None = None
    recall: float | None = None
