import threading
import time

import pytest

from vitrine_core.ingestion.runner import run_bounded


def _tracking_jobs(count: int, *, delay: float = 0.05):
    lock = threading.Lock()
    state = {"active": 0, "max_active": 0, "started": []}

    def make(index: int):
        def _job() -> int:
            with lock:
                state["active"] += 1
                state["max_active"] = max(state["max_active"], state["active"])
                state["started"].append(index)
            time.sleep(delay)
            with lock:
                state["active"] -= 1
            return index * 10

        return _job

    return [make(idx) for idx in range(count)], state


def test_run_bounded_limits_concurrency_and_keeps_order():
    jobs, state = _tracking_jobs(3)

    results = run_bounded(jobs, 2)

    assert results == [0, 10, 20]
    assert state["max_active"] <= 2
    assert sorted(state["started"]) == [0, 1, 2]


def test_run_bounded_reports_each_completion():
    jobs, _ = _tracking_jobs(3, delay=0.01)
    seen: list[tuple[int, int]] = []

    run_bounded(jobs, 2, on_result=lambda idx, value: seen.append((idx, value)))

    assert sorted(seen) == [(0, 0), (1, 10), (2, 20)]


def test_run_bounded_stops_scheduling_after_failure():
    second_started = threading.Event()
    started: list[str] = []

    def first() -> str:
        started.append("first")
        second_started.wait(timeout=2)
        time.sleep(0.2)
        return "first"

    def second() -> str:
        started.append("second")
        second_started.set()
        raise RuntimeError("boom")

    def third() -> str:
        started.append("third")
        return "third"

    with pytest.raises(RuntimeError, match="boom"):
        run_bounded([first, second, third], 2)

    assert "third" not in started
    assert started.count("first") == 1
    assert started.count("second") == 1


def test_run_bounded_lets_inflight_jobs_settle():
    finished = threading.Event()

    def slow() -> None:
        time.sleep(0.1)
        finished.set()

    def failing() -> None:
        raise ValueError("bad")

    with pytest.raises(ValueError):
        run_bounded([slow, failing], 2)

    assert finished.is_set()


def test_run_bounded_empty_and_invalid_limit():
    assert run_bounded([], 2) == []
    with pytest.raises(ValueError):
        run_bounded([lambda: 1], 0)
