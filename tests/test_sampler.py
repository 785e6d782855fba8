import itertools
import os
import threading
import time
from pathlib import Path

import pytest

from rangebench.errors import SamplerStateError
from rangebench.sampler import (
    PeakCounter,
    ResourceSampler,
    SamplerState,
    current_thread_count,
    read_process_status,
    snapshot,
)


def _wait_until(predicate, timeout_s: float = 5.0) -> None:
    deadline = time.monotonic() + timeout_s
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached before timeout")
        time.sleep(0.005)


def test_peak_counter_keeps_maximum():
    peak = PeakCounter()
    assert peak.value == 1
    assert peak.update_max(5) == 5
    assert peak.update_max(3) == 5
    assert peak.value == 5


def test_peak_counter_concurrent_updates_do_not_lose_the_maximum():
    peak = PeakCounter(initial=0)
    n_writers = 8
    per_writer = 2000
    barrier = threading.Barrier(n_writers)

    def writer(offset: int) -> None:
        barrier.wait()
        for value in range(offset, n_writers * per_writer, n_writers):
            peak.update_max(value)

    workers = [threading.Thread(target=writer, args=(i,)) for i in range(n_writers)]
    for w in workers:
        w.start()
    for w in workers:
        w.join()
    assert peak.value == n_writers * per_writer - 1


def test_sampler_folds_samples_into_peak():
    values = itertools.chain([2, 7, 3], itertools.repeat(1))
    peak = PeakCounter()
    sampler = ResourceSampler(peak, sample=lambda: next(values), interval_s=0.01)
    assert sampler.state is SamplerState.IDLE

    sampler.start()
    assert sampler.state is SamplerState.RUNNING
    _wait_until(lambda: sampler.samples_taken >= 4)
    sampler.stop()

    assert sampler.state is SamplerState.STOPPED
    assert peak.value == 7


def test_start_takes_a_sample_on_the_calling_thread():
    callers = []

    def sample() -> int:
        callers.append(threading.current_thread().name)
        return 4

    peak = PeakCounter()
    sampler = ResourceSampler(peak, sample=sample, interval_s=0.01)
    sampler.start()
    try:
        assert callers[0] == threading.current_thread().name
        assert peak.value == 4
    finally:
        sampler.stop()


def test_sampler_ignores_unreadable_samples():
    peak = PeakCounter()
    with ResourceSampler(peak, sample=lambda: -1, interval_s=0.01):
        time.sleep(0.03)
    assert peak.value == 1


def test_sampler_state_transitions_are_enforced():
    sampler = ResourceSampler(PeakCounter(), sample=lambda: 1, interval_s=0.01)
    with pytest.raises(SamplerStateError):
        sampler.stop()
    sampler.start()
    with pytest.raises(SamplerStateError):
        sampler.start()
    sampler.stop()
    with pytest.raises(SamplerStateError):
        sampler.start()


def test_stop_without_a_thread_is_a_state_error():
    sampler = ResourceSampler(PeakCounter(), sample=lambda: 1, interval_s=0.01)
    sampler._state = SamplerState.RUNNING
    with pytest.raises(SamplerStateError, match="no thread"):
        sampler.stop()


def test_sampler_stops_within_one_interval():
    sampler = ResourceSampler(PeakCounter(), sample=lambda: 1, interval_s=0.1)
    sampler.start()
    time.sleep(0.02)
    started = time.monotonic()
    sampler.stop()
    assert time.monotonic() - started < 1.0


def test_sampler_captures_transient_thread_peak():
    n_extra = 6
    baseline = current_thread_count()
    peak = PeakCounter()
    sampler = ResourceSampler(peak, interval_s=0.1)
    sampler.start()

    release = threading.Event()
    started = threading.Barrier(n_extra + 1)

    def worker() -> None:
        started.wait()
        release.wait()

    workers = [threading.Thread(target=worker) for _ in range(n_extra)]
    for w in workers:
        w.start()
    started.wait()
    seen = sampler.samples_taken
    _wait_until(lambda: sampler.samples_taken >= seen + 2)
    release.set()
    for w in workers:
        w.join()

    # The extra threads are gone before the sampler is stopped.
    sampler.stop()
    assert peak.value >= baseline + 1 + n_extra


@pytest.mark.skipif(not Path("/proc/self/status").exists(), reason="requires /proc")
def test_read_process_status_returns_memory_lines():
    lines = read_process_status()
    prefixes = {line.split(":", 1)[0] for line in lines}
    assert "Name" in prefixes
    assert "VmHWM" in prefixes


def test_read_process_status_unreadable_pid_is_empty():
    assert read_process_status(pid=-1) == []


def test_snapshot_reads_peak_and_pid():
    peak = PeakCounter()
    peak.update_max(9)
    sample = snapshot(peak)
    assert sample.peak_threads == 9
    assert sample.pid == os.getpid()
