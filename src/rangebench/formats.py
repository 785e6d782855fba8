from __future__ import annotations

import re
import struct
import sys
from collections.abc import Iterable, Iterator, Sequence
from pathlib import Path
from typing import IO

import numpy as np
from numpy.typing import DTypeLike, NDArray

from .errors import InputOpenError, LineParseError, RecordFormatError

# fvecs/ivecs layout: repeated records of int32 dim followed by dim elements.
_HEADER = struct.Struct("<i")
_INT_TOKEN = re.compile(r"[+-]?[0-9]+")
_RANGE_LINE = re.compile(r"([0-9]+)-([0-9]+)")


def read_vector_records(path: str | Path, dtype: DTypeLike = np.float32) -> list[NDArray]:
    """Read length-prefixed records until end of file.

    A record whose payload is cut short by EOF is dropped and reading stops.
    If the file cannot be opened a diagnostic goes to stderr and the result is
    empty; callers decide whether an empty set is fatal.
    """
    source = Path(path)
    target = np.dtype(dtype)
    wire = target.newbyteorder("<")
    try:
        handle = source.open("rb")
    except OSError as exc:
        print(f"Error: unable to open {source} for reading: {exc}", file=sys.stderr)
        return []

    records: list[NDArray] = []
    with handle:
        while True:
            header = handle.read(_HEADER.size)
            if len(header) < _HEADER.size:
                break
            (dim,) = _HEADER.unpack(header)
            if dim < 0:
                raise RecordFormatError(f"negative dimension {dim} in record {len(records)} of {source}")
            nbytes = dim * wire.itemsize
            payload = handle.read(nbytes)
            if len(payload) < nbytes:
                break
            records.append(np.frombuffer(payload, dtype=wire).astype(target))
    return records


def read_fvecs(path: str | Path) -> list[NDArray[np.float32]]:
    return read_vector_records(path, dtype=np.float32)


def read_ivecs(path: str | Path) -> list[NDArray[np.int32]]:
    return read_vector_records(path, dtype=np.int32)


def stack_vectors(records: Sequence[NDArray], dtype: DTypeLike = np.float32) -> NDArray:
    if not records:
        return np.empty((0, 0), dtype=dtype)
    dims = {int(row.shape[0]) for row in records}
    if len(dims) != 1:
        raise RecordFormatError(f"records have inconsistent dimensionality: {sorted(dims)}")
    return np.ascontiguousarray(np.vstack(records), dtype=dtype)


def _open_text(path: str | Path) -> IO[str]:
    try:
        return Path(path).open("r", encoding="utf-8", newline="")
    except OSError as exc:
        raise InputOpenError(path, exc.strerror) from exc


def _numbered_lines(handle: IO[str]) -> Iterator[tuple[int, str]]:
    # Only "\n" ends a line; a stray "\r" stays part of the line text.
    lines = handle.read().split("\n")
    if lines[-1] == "":
        lines.pop()
    yield from enumerate(lines, start=1)


def read_one_int_per_line(path: str | Path) -> list[int]:
    values: list[int] = []
    with _open_text(path) as handle:
        for line_number, line in _numbered_lines(handle):
            tokens = line.split()
            if not tokens or _INT_TOKEN.fullmatch(tokens[0]) is None:
                raise LineParseError(path, line_number, "Non-integer or empty line")
            if len(tokens) > 1:
                raise LineParseError(path, line_number, "More than one value")
            values.append(int(tokens[0]))
    return values


def read_multi_int_per_line(path: str | Path) -> list[list[int]]:
    rows: list[list[int]] = []
    with _open_text(path) as handle:
        for line_number, line in _numbered_lines(handle):
            row: list[int] = []
            for token in line.split(","):
                if not token:
                    continue
                stripped = token.strip()
                if _INT_TOKEN.fullmatch(stripped) is None:
                    raise LineParseError(path, line_number, f"Invalid integer {token!r}")
                row.append(int(stripped))
            rows.append(row)
    return rows


def read_range_per_line(path: str | Path) -> list[tuple[int, int]]:
    ranges: list[tuple[int, int]] = []
    with _open_text(path) as handle:
        for line_number, line in _numbered_lines(handle):
            match = _RANGE_LINE.fullmatch(line)
            if match is None:
                raise LineParseError(path, line_number, "Invalid range format")
            ranges.append((int(match.group(1)), int(match.group(2))))
    return ranges


def read_identifier_mapping(path: str | Path) -> NDArray[np.int64]:
    """Read the ``sorted position -> original position`` table.

    Layout: int32 count, then count little-endian int32 indices.
    """
    source = Path(path)
    try:
        blob = source.read_bytes()
    except OSError as exc:
        raise InputOpenError(source, exc.strerror) from exc

    if len(blob) < _HEADER.size:
        raise RecordFormatError(f"identifier mapping {source} is missing its count header")
    (count,) = _HEADER.unpack_from(blob)
    if count < 0:
        raise RecordFormatError(f"identifier mapping {source} declares negative count {count}")
    expected = _HEADER.size + count * 4
    if len(blob) != expected:
        raise RecordFormatError(
            f"identifier mapping {source} declares {count} entries "
            f"({expected} bytes) but holds {len(blob)} bytes"
        )
    values = np.frombuffer(blob, dtype="<i4", count=count, offset=_HEADER.size)
    return values.astype(np.int64)


def read_groundtruth(path: str | Path) -> list[NDArray[np.int32]]:
    source = Path(path)
    if source.suffix.lower() == ".ivecs":
        return read_ivecs(source)
    return [np.asarray(row, dtype=np.int32) for row in read_multi_int_per_line(source)]


def write_vector_records(
    path: str | Path,
    rows: Iterable[Sequence[float] | NDArray],
    dtype: DTypeLike = np.float32,
) -> int:
    wire = np.dtype(dtype).newbyteorder("<")
    count = 0
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("wb") as out:
        for row in rows:
            arr = np.asarray(row, dtype=wire).reshape(-1)
            out.write(_HEADER.pack(int(arr.shape[0])))
            out.write(arr.tobytes())
            count += 1
    return count


def write_identifier_mapping(path: str | Path, mapping: Sequence[int] | NDArray) -> None:
    arr = np.asarray(mapping, dtype="<i4").reshape(-1)
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("wb") as out:
        out.write(_HEADER.pack(int(arr.shape[0])))
        out.write(arr.tobytes())


def write_ranges(path: str | Path, ranges: Iterable[tuple[int, int]]) -> None:
    text = "".join(f"{int(low)}-{int(high)}\n" for low, high in ranges)
    Path(path).write_text(text, encoding="utf-8")


__all__ = [
    "read_fvecs",
    "read_groundtruth",
    "read_identifier_mapping",
    "read_ivecs",
    "read_multi_int_per_line",
    "read_one_int_per_line",
    "read_range_per_line",
    "read_vector_records",
    "stack_vectors",
    "write_identifier_mapping",
    "write_ranges",
    "write_vector_records",
]
