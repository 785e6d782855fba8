from __future__ import annotations

import json
import math
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .config import BUILD, RunConfig
from .types import MetricsReport, QueryEvaluation, ResourceSample


def _fmt_float(value: float) -> str:
    return f"{float(value):.6f}"


def build_report(
    *,
    mode: str,
    elapsed_s: float,
    resources: ResourceSample,
    evaluation: QueryEvaluation | None = None,
) -> MetricsReport:
    return MetricsReport(
        mode=mode,
        elapsed_s=float(elapsed_s),
        peak_threads=int(resources.peak_threads),
        pid=int(resources.pid),
        status_lines=tuple(resources.status_lines),
        qps=None if evaluation is None else evaluation.qps,
        recall=None if evaluation is None else evaluation.recall,
    )


def format_report(report: MetricsReport) -> list[str]:
    if report.mode == BUILD:
        lines = [
            "Index construction completed.",
            f"Build time (s): {_fmt_float(report.elapsed_s)}",
            f"Peak thread count: {int(report.peak_threads)}",
        ]
    else:
        lines = [
            "Query execution completed.",
            f"Query time (s): {_fmt_float(report.elapsed_s)}",
            f"Peak thread count: {int(report.peak_threads)}",
            f"QPS: {_fmt_float(report.qps if report.qps is not None else 0.0)}",
            f"Recall: {_fmt_float(report.recall if report.recall is not None else 0.0)}",
        ]
    lines.append(f"PID: {int(report.pid)}")
    # Status lines are absent when /proc could not be read.
    lines.extend(report.status_lines)
    return lines


def print_report(report: MetricsReport) -> None:
    for line in format_report(report):
        print(line)


def serialize_report(report: MetricsReport, config: RunConfig | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "metrics": asdict(report),
    }
    payload["metrics"]["status_lines"] = list(report.status_lines)
    # JSON has no infinity; a zero-length timing has no meaningful rate.
    for key, value in payload["metrics"].items():
        if isinstance(value, float) and not math.isfinite(value):
            payload["metrics"][key] = None
    if config is not None:
        payload["config"] = config.as_dict()
    return payload


def write_report_json(path: str | Path, report: MetricsReport, config: RunConfig | None = None) -> Path:
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(serialize_report(report, config), indent=2, ensure_ascii=False, allow_nan=False)
    output.write_text(text, encoding="utf-8")
    return output


__all__ = ["build_report", "format_report", "print_report", "serialize_report", "write_report_json"]
