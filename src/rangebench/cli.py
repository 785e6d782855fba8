from __future__ import annotations

import argparse
import sys
from typing import Any

from .config import BUILD, ID_SPACE_SORTED, SEARCH, RunConfig, load_config_file, merge_values, resolve_config
from .errors import RangeBenchError
from .harness import run
from .prepare import convert_hdf5, sort_by_attribute
from .report import print_report, write_report_json
from .tracking import build_tracking_sink


def _add_common_run_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", default=None, help="YAML file with run options; CLI flags override it")
    parser.add_argument("--data_path", default=None, help="Base vectors (.fvecs)")
    parser.add_argument("--index_file", default=None, help="Index artifact path")
    parser.add_argument("--M", type=int, default=None, help="Graph fan-out parameter")
    parser.add_argument("--engine", default=None, help="Engine to drive: bruteforce, hnswlib")
    parser.add_argument("--output", default=None, help="Also write the report as JSON to this path")
    parser.add_argument("--wandb", action="store_true", help="Enable Weights & Biases tracking")
    parser.add_argument("--wandb-project", default=None, help="WandB project name")
    parser.add_argument("--wandb-entity", default=None, help="WandB entity/team")
    parser.add_argument("--wandb-run-name", default=None, help="WandB run name")
    parser.add_argument("--wandb-group", default=None, help="WandB run group")
    parser.add_argument("--wandb-mode", default=None, help="WandB mode (online/offline/disabled)")
    parser.add_argument("--wandb-tags", nargs="+", default=None, help="WandB tags")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rangebench",
        description="Measure build and query quality of range-filtered ANN engines",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    build = sub.add_parser(BUILD, help="Build an index and report build time and resources")
    _add_common_run_args(build)
    build.add_argument("--ef_construction", type=int, default=None, help="Construction-quality parameter")
    build.add_argument("--threads", type=int, default=None, help="Thread budget for the engine")

    search = sub.add_parser(SEARCH, help="Run range-filtered queries and report QPS and recall")
    _add_common_run_args(search)
    search.add_argument("--query_path", default=None, help="Query vectors (.fvecs)")
    search.add_argument("--query_ranges_file", default=None, help="One '<low>-<high>' line per query")
    search.add_argument("--groundtruth_file", default=None, help="Groundtruth ids (.ivecs or comma-separated lines)")
    search.add_argument("--ef_search", type=int, default=None, help="Search-quality parameter")
    search.add_argument("--top_k", type=int, default=None, help="Results requested per query (default: 10)")
    search.add_argument("--edge_limit", type=int, default=None, help="Edge-exploration limit (default: M)")
    search.add_argument(
        "--remap_ids",
        action="store_true",
        help="Engine ids are in sorted order; translate them through the mapping file before scoring",
    )
    search.add_argument("--mapping_file", default=None, help="Mapping file (default: <data_path>.mapping)")

    sort = sub.add_parser("sort-by-attribute", help="Reorder base vectors by attribute and write the id mapping")
    sort.add_argument("--data_path", required=True, help="Base vectors (.fvecs) in original order")
    sort.add_argument("--attributes_file", required=True, help="One integer attribute per line, per point")
    sort.add_argument("--output_path", required=True, help="Sorted vectors output (.fvecs)")

    convert = sub.add_parser("convert-hdf5", help="Export an ann-benchmarks HDF5 file as fvecs/ivecs inputs")
    convert.add_argument("--dataset", required=True, help="Input .hdf5 file")
    convert.add_argument("--output_dir", required=True, help="Directory for the exported files")
    convert.add_argument("--chunk_rows", type=int, default=4096, help="Rows per chunk when streaming from HDF5")
    return parser


def _collect_run_values(args: argparse.Namespace) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for key in (
        "data_path",
        "index_file",
        "query_path",
        "query_ranges_file",
        "groundtruth_file",
        "M",
        "ef_construction",
        "ef_search",
        "threads",
        "top_k",
        "edge_limit",
        "engine",
        "mapping_file",
        "output",
    ):
        values[key] = getattr(args, key, None)
    if getattr(args, "remap_ids", False):
        values["id_space"] = ID_SPACE_SORTED
    values["wandb"] = {
        "enabled": True if args.wandb else None,
        "project": args.wandb_project,
        "entity": args.wandb_entity,
        "run_name": args.wandb_run_name,
        "group": args.wandb_group,
        "mode": args.wandb_mode,
        "tags": [str(x) for x in args.wandb_tags] if args.wandb_tags is not None else None,
    }
    return values


def _build_run_config(args: argparse.Namespace) -> RunConfig:
    base = load_config_file(args.config) if args.config else {}
    values = merge_values(base, _collect_run_values(args))
    return resolve_config(args.command, values)


def _run_harness(args: argparse.Namespace) -> None:
    config = _build_run_config(args)
    tracking_sink = build_tracking_sink(config)
    try:
        report = run(config)
        print_report(report)
        if config.output is not None:
            output = write_report_json(config.output, report, config)
            print(f"report written: {output.resolve()}")
        tracking_sink.log_report(report=report)
    finally:
        tracking_sink.finish()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        if args.command in (BUILD, SEARCH):
            _run_harness(args)
        elif args.command == "sort-by-attribute":
            mapping = sort_by_attribute(args.data_path, args.attributes_file, args.output_path)
            print(f"sorted {mapping.shape[0]} points: {args.output_path}")
        else:
            written = convert_hdf5(args.dataset, args.output_dir, chunk_rows=args.chunk_rows)
            for name, path in written.items():
                print(f"{name}: {path.resolve()}")
    except RangeBenchError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
