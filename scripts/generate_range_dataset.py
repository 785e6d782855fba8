from __future__ import annotations

import argparse
from pathlib import Path

import numpy as np

from rangebench.formats import write_ranges, write_vector_records


def _make_points(
    *,
    size: int,
    dim: int,
    n_centers: int,
    cluster_noise: float,
    rng: np.random.Generator,
) -> np.ndarray:
    centers = rng.normal(size=(n_centers, dim)).astype(np.float32)
    assign = rng.integers(0, n_centers, size=size)
    noise = rng.normal(scale=cluster_noise, size=(size, dim)).astype(np.float32)
    return (centers[assign] + noise).astype(np.float32)


def _make_ranges(
    *,
    n_points: int,
    query_size: int,
    min_fraction: float,
    max_fraction: float,
    rng: np.random.Generator,
) -> list[tuple[int, int]]:
    ranges: list[tuple[int, int]] = []
    for _ in range(query_size):
        width = int(n_points * rng.uniform(min_fraction, max_fraction))
        width = max(1, min(n_points, width))
        low = int(rng.integers(0, n_points - width + 1))
        ranges.append((low, low + width - 1))
    return ranges


def _range_ground_truth(
    base: np.ndarray,
    queries: np.ndarray,
    ranges: list[tuple[int, int]],
    mapping: np.ndarray,
    k: int,
) -> list[np.ndarray]:
    # Ranges address sorted positions; groundtruth is reported in original ids.
    rows: list[np.ndarray] = []
    for q, (low, high) in zip(queries, ranges):
        candidates = mapping[low : high + 1]
        vectors = base[candidates]
        distances = np.sum((vectors - q) * (vectors - q), axis=1)
        take = min(k, candidates.shape[0])
        order = np.argsort(distances, kind="stable")[:take]
        rows.append(candidates[order].astype(np.int32))
    return rows


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate a synthetic range-filtered workload (fvecs/ivecs plus attribute and range files)."
    )
    parser.add_argument("--output-dir", required=True, help="Directory for the generated files")
    parser.add_argument("--base-size", type=int, default=20_000)
    parser.add_argument("--query-size", type=int, default=500)
    parser.add_argument("--dim", type=int, default=64)
    parser.add_argument("--n-centers", type=int, default=64)
    parser.add_argument("--cluster-noise", type=float, default=0.35)
    parser.add_argument("--min-range-fraction", type=float, default=0.01)
    parser.add_argument("--max-range-fraction", type=float, default=0.5)
    parser.add_argument("--top-k", type=int, default=10)
    parser.add_argument("--seed", type=int, default=42)
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    if args.base_size < 1 or args.query_size < 1:
        raise ValueError("base-size and query-size must be positive")
    if not (0.0 < args.min_range_fraction <= args.max_range_fraction <= 1.0):
        raise ValueError("range fractions must satisfy 0 < min <= max <= 1")

    out_dir = Path(args.output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    rng = np.random.default_rng(args.seed)

    base = _make_points(
        size=args.base_size,
        dim=args.dim,
        n_centers=args.n_centers,
        cluster_noise=args.cluster_noise,
        rng=rng,
    )
    queries = _make_points(
        size=args.query_size,
        dim=args.dim,
        n_centers=args.n_centers,
        cluster_noise=args.cluster_noise * 1.1,
        rng=rng,
    )
    attributes = rng.integers(0, 1_000_000, size=args.base_size)
    mapping = np.argsort(attributes, kind="stable")
    ranges = _make_ranges(
        n_points=args.base_size,
        query_size=args.query_size,
        min_fraction=args.min_range_fraction,
        max_fraction=args.max_range_fraction,
        rng=rng,
    )
    ground_truth = _range_ground_truth(base, queries, ranges, mapping, args.top_k)

    write_vector_records(out_dir / "base.fvecs", base)
    (out_dir / "attributes.txt").write_text("".join(f"{int(a)}\n" for a in attributes), encoding="utf-8")
    write_vector_records(out_dir / "query.fvecs", queries)
    write_ranges(out_dir / "query_ranges.txt", ranges)
    write_vector_records(out_dir / "groundtruth.ivecs", ground_truth, dtype=np.int32)

    print(f"written: {out_dir.resolve()}")
    print(f"base={base.shape}, queries={queries.shape}, top_k={args.top_k}")
    print("next: rangebench sort-by-attribute, then build/search on the sorted file with --remap_ids")


if __name__ == "__main__":
    main()
