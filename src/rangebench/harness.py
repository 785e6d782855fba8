"""Build and search runs: load inputs, drive the engine under the sampler, report."""

from __future__ import annotations

from time import perf_counter

import numpy as np
from numpy.typing import NDArray

from .config import BUILD, SEARCH, RunConfig
from .engines import RangeFilteredEngine, resolve_engine
from .errors import PreconditionError
from .evaluation import check_query_inputs, evaluate_queries
from .formats import read_fvecs, read_groundtruth, read_identifier_mapping, read_range_per_line, stack_vectors
from .report import build_report
from .sampler import DEFAULT_INTERVAL_S, PeakCounter, ResourceSampler, snapshot
from .types import MetricsReport


def _load_points(path, label: str) -> NDArray[np.float32]:
    records = read_fvecs(path)
    if not records:
        raise PreconditionError(f"no {label} vectors were loaded from {path}")
    return stack_vectors(records, dtype=np.float32)


def run_build(
    config: RunConfig,
    *,
    engine: RangeFilteredEngine | None = None,
    interval_s: float = DEFAULT_INTERVAL_S,
) -> MetricsReport:
    if config.mode != BUILD:
        raise ValueError(f"run_build needs a build config, got mode={config.mode!r}")
    engine = engine or resolve_engine(config.engine)

    peak = PeakCounter()
    with ResourceSampler(peak, interval_s=interval_s):
        start = perf_counter()
        data = _load_points(config.data_path, "data")
        print(f"data loaded: points={data.shape[0]}, dim={data.shape[1]}, engine={engine.name}")
        engine.build_and_save(
            data,
            M=int(config.M),
            ef_construction=int(config.ef_construction),
            threads=int(config.threads),
            index_path=config.index_file,
        )
        elapsed = perf_counter() - start

    return build_report(mode=BUILD, elapsed_s=elapsed, resources=snapshot(peak))


def run_search(
    config: RunConfig,
    *,
    engine: RangeFilteredEngine | None = None,
    interval_s: float = DEFAULT_INTERVAL_S,
) -> MetricsReport:
    if config.mode != SEARCH:
        raise ValueError(f"run_search needs a search config, got mode={config.mode!r}")
    engine = engine or resolve_engine(config.engine)

    peak = PeakCounter()
    with ResourceSampler(peak, interval_s=interval_s):
        queries = read_fvecs(config.query_path)
        ranges = read_range_per_line(config.query_ranges_file)
        groundtruth = read_groundtruth(config.groundtruth_file)
        check_query_inputs(queries, ranges, groundtruth)

        mapping = read_identifier_mapping(config.mapping_file) if config.remap_ids else None
        data = _load_points(config.data_path, "data")
        if mapping is not None and mapping.shape[0] != data.shape[0]:
            raise PreconditionError(
                f"identifier mapping {config.mapping_file} has {mapping.shape[0]} entries "
                f"but the dataset has {data.shape[0]} points"
            )
        query_matrix = stack_vectors(queries, dtype=np.float32)
        if query_matrix.shape[1] != data.shape[1]:
            raise PreconditionError(
                f"queries in {config.query_path} have dimension {query_matrix.shape[1]} "
                f"but the dataset has dimension {data.shape[1]}"
            )
        print(
            f"inputs loaded: points={data.shape[0]}, queries={len(queries)}, "
            f"id_space={config.id_space}, engine={engine.name}"
        )

        index = engine.load_index(data, index_path=config.index_file, M=int(config.M))
        evaluation = evaluate_queries(
            engine,
            index,
            query_matrix,
            ranges,
            groundtruth,
            ef_search=int(config.ef_search),
            top_k=int(config.top_k),
            edge_limit=int(config.edge_limit),
            mapping=mapping,
        )

    return build_report(
        mode=SEARCH,
        elapsed_s=evaluation.elapsed_s,
        resources=snapshot(peak),
        evaluation=evaluation,
    )


def run(config: RunConfig, *, engine: RangeFilteredEngine | None = None) -> MetricsReport:
    if config.mode == BUILD:
        return run_build(config, engine=engine)
    return run_search(config, engine=engine)


__all__ = ["run", "run_build", "run_search"]
