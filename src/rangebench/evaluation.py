from __future__ import annotations

from collections.abc import Iterable, Sequence
from time import perf_counter
from typing import Any

import numpy as np
from numpy.typing import NDArray

from .engines import RangeFilteredEngine
from .errors import IdentifierMappingError, PreconditionError
from .types import Candidate, QueryEvaluation, RangePredicate


def check_query_inputs(
    queries: Sequence[Any],
    ranges: Sequence[RangePredicate],
    groundtruth: Sequence[Any],
) -> None:
    if len(queries) == 0:
        raise PreconditionError("no queries were loaded")
    if len(ranges) != len(queries):
        raise PreconditionError(
            f"Number of query ranges ({len(ranges)}) does not match number of queries ({len(queries)})"
        )
    if len(groundtruth) != len(queries):
        raise PreconditionError(
            f"Number of groundtruth entries ({len(groundtruth)}) does not match number of queries ({len(queries)})"
        )


def translate_ids(ids: Iterable[int], mapping: NDArray[np.int64] | None) -> list[int]:
    """Map engine (sorted) identifiers to original dataset identifiers.

    ``mapping is None`` means the engine stores points in input order.
    """
    if mapping is None:
        return [int(sid) for sid in ids]
    size = int(mapping.shape[0])
    translated: list[int] = []
    for sid in ids:
        sid = int(sid)
        if sid < 0 or sid >= size:
            raise IdentifierMappingError(f"engine returned id {sid}, outside the mapping of {size} entries")
        translated.append(int(mapping[sid]))
    return translated


def count_true_positives(candidate_ids: Iterable[int], groundtruth_row: Iterable[int]) -> int:
    found = set(candidate_ids)
    return sum(1 for gt_id in groundtruth_row if int(gt_id) in found)


def evaluate_queries(
    engine: RangeFilteredEngine,
    index: Any,
    queries: Sequence[NDArray[np.float32]],
    ranges: Sequence[RangePredicate],
    groundtruth: Sequence[Iterable[int]],
    *,
    ef_search: int,
    top_k: int,
    edge_limit: int,
    mapping: NDArray[np.int64] | None = None,
) -> QueryEvaluation:
    check_query_inputs(queries, ranges, groundtruth)

    true_positives = 0
    start = perf_counter()
    for i, query in enumerate(queries):
        low, high = ranges[i]
        candidates: list[Candidate] = engine.search(
            index,
            query,
            low=low,
            high=high,
            ef_search=ef_search,
            top_k=top_k,
            edge_limit=edge_limit,
        )
        ids = translate_ids((sid for _, sid in candidates), mapping)
        true_positives += count_true_positives(ids, groundtruth[i])
    elapsed = perf_counter() - start

    return QueryEvaluation(
        true_positives=true_positives,
        num_queries=len(queries),
        top_k=int(top_k),
        elapsed_s=float(elapsed),
    )


__all__ = ["check_query_inputs", "count_true_positives", "evaluate_queries", "translate_ids"]
