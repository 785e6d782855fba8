from pathlib import Path

import numpy as np

from rangebench.cli import main
from rangebench.formats import write_ranges, write_vector_records


def _write_dataset(tmp_path: Path) -> None:
    write_vector_records(tmp_path / "base.fvecs", [[float(i), 0.0] for i in range(10)])
    write_vector_records(tmp_path / "query.fvecs", [[1.1, 0.0], [7.9, 0.0]])
    write_ranges(tmp_path / "ranges.txt", [(0, 9), (0, 5)])
    (tmp_path / "gt.csv").write_text("1\n5\n", encoding="utf-8")


def test_cli_build_and_search(tmp_path: Path, capsys):
    _write_dataset(tmp_path)
    index = tmp_path / "index.bin"

    code = main(
        [
            "build",
            "--data_path", str(tmp_path / "base.fvecs"),
            "--index_file", str(index),
            "--M", "8",
            "--ef_construction", "32",
            "--threads", "2",
        ]
    )
    assert code == 0
    out = capsys.readouterr().out
    assert "Build time (s): " in out
    assert "Peak thread count: " in out
    assert "PID: " in out

    report_path = tmp_path / "report.json"
    code = main(
        [
            "search",
            "--data_path", str(tmp_path / "base.fvecs"),
            "--query_path", str(tmp_path / "query.fvecs"),
            "--query_ranges_file", str(tmp_path / "ranges.txt"),
            "--groundtruth_file", str(tmp_path / "gt.csv"),
            "--index_file", str(index),
            "--M", "8",
            "--ef_search", "16",
            "--top_k", "1",
            "--output", str(report_path),
        ]
    )
    assert code == 0
    out = capsys.readouterr().out
    assert "Recall: 1.000000" in out
    assert "QPS: " in out
    assert report_path.exists()


def test_cli_config_error_exits_nonzero(tmp_path: Path, capsys):
    code = main(["build", "--data_path", str(tmp_path / "base.fvecs"), "--index_file", "x", "--M", "0"])
    assert code == 1
    assert "M should be a positive integer" in capsys.readouterr().err


def test_cli_reads_yaml_config(tmp_path: Path, capsys):
    _write_dataset(tmp_path)
    config = tmp_path / "build.yaml"
    config.write_text(
        f"data_path: {tmp_path / 'base.fvecs'}\nindex_file: {tmp_path / 'index.bin'}\nM: 4\n"
        "ef_construction: 16\nthreads: 1\n",
        encoding="utf-8",
    )
    assert main(["build", "--config", str(config), "--threads", "2"]) == 0
    assert "Index construction completed." in capsys.readouterr().out


def test_cli_parse_error_exits_nonzero(tmp_path: Path, capsys):
    _write_dataset(tmp_path)
    (tmp_path / "ranges.txt").write_text("0-9\n0,5\n", encoding="utf-8")
    code = main(
        [
            "search",
            "--data_path", str(tmp_path / "base.fvecs"),
            "--query_path", str(tmp_path / "query.fvecs"),
            "--query_ranges_file", str(tmp_path / "ranges.txt"),
            "--groundtruth_file", str(tmp_path / "gt.csv"),
            "--index_file", str(tmp_path / "index.bin"),
            "--M", "8",
            "--ef_search", "16",
        ]
    )
    assert code == 1
    assert "line 2" in capsys.readouterr().err


def test_cli_sort_by_attribute(tmp_path: Path, capsys):
    write_vector_records(tmp_path / "base.fvecs", np.zeros((3, 2), dtype=np.float32))
    (tmp_path / "attrs.txt").write_text("2\n0\n1\n", encoding="utf-8")
    code = main(
        [
            "sort-by-attribute",
            "--data_path", str(tmp_path / "base.fvecs"),
            "--attributes_file", str(tmp_path / "attrs.txt"),
            "--output_path", str(tmp_path / "sorted.fvecs"),
        ]
    )
    assert code == 0
    assert (tmp_path / "sorted.fvecs.mapping").exists()
    assert "sorted 3 points" in capsys.readouterr().out


def test_cli_non_mapping_wandb_in_config_is_a_config_error(tmp_path: Path, capsys):
    _write_dataset(tmp_path)
    config = tmp_path / "build.yaml"
    config.write_text(
        f"data_path: {tmp_path / 'base.fvecs'}\nindex_file: {tmp_path / 'index.bin'}\nM: 4\n"
        "ef_construction: 16\nthreads: 1\nwandb: true\n",
        encoding="utf-8",
    )
    assert main(["build", "--config", str(config)]) == 1
    assert "wandb must be a mapping" in capsys.readouterr().err
