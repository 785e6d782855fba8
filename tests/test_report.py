import json
from pathlib import Path

import pytest

from rangebench.config import BUILD, SEARCH, resolve_config
from rangebench.report import build_report, format_report, print_report, serialize_report, write_report_json
from rangebench.types import QueryEvaluation, ResourceSample


def _resources(status_lines=None) -> ResourceSample:
    return ResourceSample(
        peak_threads=5,
        pid=4242,
        status_lines=["Name:\tpython", "VmPeak:\t  204800 kB", "VmHWM:\t  102400 kB"]
        if status_lines is None
        else status_lines,
    )


def test_build_report_lines():
    report = build_report(mode=BUILD, elapsed_s=1.5, resources=_resources())
    assert format_report(report) == [
        "Index construction completed.",
        "Build time (s): 1.500000",
        "Peak thread count: 5",
        "PID: 4242",
        "Name:\tpython",
        "VmPeak:\t  204800 kB",
        "VmHWM:\t  102400 kB",
    ]


def test_search_report_lines():
    evaluation = QueryEvaluation(true_positives=15, num_queries=3, top_k=10, elapsed_s=0.5)
    report = build_report(mode=SEARCH, elapsed_s=evaluation.elapsed_s, resources=_resources(), evaluation=evaluation)
    lines = format_report(report)
    assert lines[:5] == [
        "Query execution completed.",
        "Query time (s): 0.500000",
        "Peak thread count: 5",
        "QPS: 6.000000",
        "Recall: 0.500000",
    ]
    assert lines[5] == "PID: 4242"


def test_report_omits_unreadable_status_lines(capsys):
    report = build_report(mode=BUILD, elapsed_s=0.25, resources=_resources(status_lines=[]))
    print_report(report)
    out = capsys.readouterr().out.splitlines()
    assert out[-1] == "PID: 4242"
    assert not any(line.startswith("Vm") for line in out)


def test_write_report_json(tmp_path: Path):
    cfg = resolve_config(
        BUILD,
        {"data_path": "/d/base.fvecs", "index_file": "/d/index.bin", "M": 4, "ef_construction": 8, "threads": 1},
    )
    report = build_report(mode=BUILD, elapsed_s=2.0, resources=_resources())
    output = write_report_json(tmp_path / "out" / "report.json", report, cfg)
    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["metrics"]["elapsed_s"] == pytest.approx(2.0)
    assert payload["metrics"]["status_lines"][0] == "Name:\tpython"
    assert payload["config"]["data_path"] == "/d/base.fvecs"
    assert serialize_report(report)["metrics"]["peak_threads"] == 5


def test_write_report_json_with_zero_query_time(tmp_path: Path):
    evaluation = QueryEvaluation(true_positives=3, num_queries=3, top_k=1, elapsed_s=0.0)
    report = build_report(mode=SEARCH, elapsed_s=0.0, resources=_resources(), evaluation=evaluation)
    output = write_report_json(tmp_path / "report.json", report)
    text = output.read_text(encoding="utf-8")
    assert "Infinity" not in text
    payload = json.loads(text)
    assert payload["metrics"]["qps"] is None
    assert payload["metrics"]["recall"] == pytest.approx(1.0)
