from rangebench.config import SEARCH, resolve_config
from rangebench.report import build_report
from rangebench.tracking import NullTrackingSink, build_tracking_sink, report_metrics
from rangebench.types import QueryEvaluation, ResourceSample


def _config(wandb):
    return resolve_config(
        SEARCH,
        {
            "data_path": "/d/base.fvecs",
            "query_path": "/d/query.fvecs",
            "query_ranges_file": "/d/ranges.txt",
            "groundtruth_file": "/d/gt.ivecs",
            "index_file": "/d/index.bin",
            "M": 8,
            "ef_search": 32,
            "wandb": wandb,
        },
    )


def _report():
    evaluation = QueryEvaluation(true_positives=8, num_queries=1, top_k=10, elapsed_s=0.1)
    resources = ResourceSample(peak_threads=3, pid=1, status_lines=["Name:\tx", "VmHWM:\t  2048 kB"])
    return build_report(mode=SEARCH, elapsed_s=0.1, resources=resources, evaluation=evaluation)


def test_build_tracking_sink_returns_null_when_disabled():
    sink = build_tracking_sink(_config({"enabled": False}))
    assert isinstance(sink, NullTrackingSink)
    sink.log_report(report=_report())
    sink.finish()


def test_report_metrics_flattens_report():
    metrics = report_metrics(_report())
    assert metrics["search/recall"] == 0.8
    assert metrics["search/peak_threads"] == 3.0
    assert metrics["search/VmHWM_kb"] == 2048.0
    assert "search/Name_kb" not in metrics
