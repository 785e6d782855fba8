from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import h5py
import numpy as np
from numpy.typing import NDArray

from .config import MAPPING_SUFFIX
from .errors import PreconditionError, RecordFormatError
from .formats import (
    read_fvecs,
    read_one_int_per_line,
    write_identifier_mapping,
    write_ranges,
    write_vector_records,
)


def sort_by_attribute(
    data_path: str | Path,
    attributes_file: str | Path,
    output_path: str | Path,
) -> NDArray[np.int64]:
    """Reorder points by their range attribute.

    Writes the sorted vectors to ``output_path`` and the
    ``sorted position -> original position`` table next to it
    (``<output_path>.mapping``). Ties keep input order.
    """
    records = read_fvecs(data_path)
    if not records:
        raise PreconditionError(f"no data vectors were loaded from {data_path}")
    attributes = read_one_int_per_line(attributes_file)
    if len(attributes) != len(records):
        raise PreconditionError(
            f"Number of attributes ({len(attributes)}) does not match number of points ({len(records)})"
        )

    mapping = np.argsort(np.asarray(attributes, dtype=np.int64), kind="stable").astype(np.int64)
    output = Path(output_path)
    write_vector_records(output, (records[int(i)] for i in mapping), dtype=np.float32)
    write_identifier_mapping(output.with_name(output.name + MAPPING_SUFFIX), mapping)
    return mapping


def _iter_rows(ds: h5py.Dataset, dtype: type, chunk_rows: int) -> Iterator[NDArray]:
    for start in range(0, ds.shape[0], chunk_rows):
        end = min(ds.shape[0], start + chunk_rows)
        block = np.asarray(ds[start:end, :], dtype=dtype, order="C")
        yield from block


def convert_hdf5(
    dataset: str | Path,
    output_dir: str | Path,
    *,
    chunk_rows: int = 4096,
) -> dict[str, Path]:
    """Export an ann-benchmarks HDF5 file into fvecs/ivecs inputs.

    The written range file spans every point for every query, which turns the
    unfiltered groundtruth into a valid range-filtered workload.
    """
    source = Path(dataset)
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    written: dict[str, Path] = {}

    with h5py.File(source, "r") as f:
        if "train" not in f:
            raise RecordFormatError("HDF5 dataset must contain 'train'")
        if "test" not in f:
            raise RecordFormatError("HDF5 dataset must contain 'test'")
        train = f["train"]
        test = f["test"]
        if train.ndim != 2 or test.ndim != 2:
            raise RecordFormatError(f"train/test must be 2-D; got train.shape={train.shape}, test.shape={test.shape}")
        if int(train.shape[1]) != int(test.shape[1]):
            raise RecordFormatError("train and queries dimensionality mismatch")

        written["data"] = out_dir / "base.fvecs"
        write_vector_records(written["data"], _iter_rows(train, np.float32, chunk_rows), dtype=np.float32)
        written["queries"] = out_dir / "query.fvecs"
        write_vector_records(written["queries"], _iter_rows(test, np.float32, chunk_rows), dtype=np.float32)

        if "neighbors" in f:
            neighbors = f["neighbors"]
            if neighbors.ndim != 2 or int(neighbors.shape[0]) != int(test.shape[0]):
                raise RecordFormatError(
                    f"neighbors rows must match test rows: neighbors.shape={neighbors.shape}, test rows={test.shape[0]}"
                )
            written["groundtruth"] = out_dir / "groundtruth.ivecs"
            write_vector_records(written["groundtruth"], _iter_rows(neighbors, np.int32, chunk_rows), dtype=np.int32)

        written["ranges"] = out_dir / "query_ranges.txt"
        last = int(train.shape[0]) - 1
        write_ranges(written["ranges"], ((0, last) for _ in range(int(test.shape[0]))))

    return written


__all__ = ["convert_hdf5", "sort_by_attribute"]
