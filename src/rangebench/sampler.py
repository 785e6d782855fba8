from __future__ import annotations

import enum
import os
import threading
from collections.abc import Callable
from pathlib import Path

import psutil

from .errors import SamplerStateError
from .types import ResourceSample

DEFAULT_INTERVAL_S = 0.1
STATUS_FIELDS = ("Name:", "VmPeak:", "VmHWM:")


class PeakCounter:
    """Monotonic maximum shared between the sampler and the controller."""

    def __init__(self, initial: int = 1):
        self._lock = threading.Lock()
        self._value = int(initial)

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def update_max(self, candidate: int) -> int:
        # Compare and store under one lock so concurrent writers never lose a larger value.
        with self._lock:
            if candidate > self._value:
                self._value = int(candidate)
            return self._value


class SamplerState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


def current_thread_count() -> int:
    return int(psutil.Process().num_threads())


class ResourceSampler:
    """Polls ``sample`` in a background thread and folds results into ``peak``.

    ``stop()`` joins the thread before returning, so reading ``peak.value``
    afterwards observes every sample taken while the workload ran.
    """

    def __init__(
        self,
        peak: PeakCounter,
        sample: Callable[[], int] = current_thread_count,
        interval_s: float = DEFAULT_INTERVAL_S,
    ):
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self.peak = peak
        self._sample = sample
        self._interval_s = float(interval_s)
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._state = SamplerState.IDLE
        self.samples_taken = 0

    @property
    def state(self) -> SamplerState:
        return self._state

    def _sample_once(self) -> None:
        value = self._sample()
        if value < 0:
            return
        self.peak.update_max(value)
        self.samples_taken += 1

    def _run(self) -> None:
        while not self._stop.is_set():
            self._sample_once()
            self._stop.wait(self._interval_s)

    def start(self) -> ResourceSampler:
        if self._state is not SamplerState.IDLE:
            raise SamplerStateError(f"sampler cannot start from state {self._state.value}")
        self._sample_once()
        self._thread = threading.Thread(target=self._run, name="thread-count-sampler", daemon=True)
        self._state = SamplerState.RUNNING
        self._thread.start()
        return self

    def stop(self) -> None:
        if self._state is not SamplerState.RUNNING:
            raise SamplerStateError(f"sampler cannot stop from state {self._state.value}")
        if self._thread is None:
            raise SamplerStateError("sampler has no thread to join")
        self._stop.set()
        self._thread.join()
        self._state = SamplerState.STOPPED
        self._sample_once()

    def __enter__(self) -> ResourceSampler:
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._state is SamplerState.RUNNING:
            self.stop()


def read_process_status(pid: int | None = None, fields: tuple[str, ...] = STATUS_FIELDS) -> list[str]:
    """Return the matching ``/proc/<pid>/status`` lines, or ``[]`` if unreadable."""
    pid = os.getpid() if pid is None else int(pid)
    status_path = Path("/proc") / str(pid) / "status"
    try:
        text = status_path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return []
    return [line for line in text.splitlines() if line.startswith(fields)]


def snapshot(peak: PeakCounter, pid: int | None = None) -> ResourceSample:
    pid = os.getpid() if pid is None else int(pid)
    return ResourceSample(peak_threads=peak.value, pid=pid, status_lines=read_process_status(pid))


__all__ = [
    "DEFAULT_INTERVAL_S",
    "PeakCounter",
    "ResourceSampler",
    "STATUS_FIELDS",
    "SamplerState",
    "current_thread_count",
    "read_process_status",
    "snapshot",
]
