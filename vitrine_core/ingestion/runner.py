from __future__ import annotations

from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Callable, Sequence, TypeVar, cast

T = TypeVar("T")


def run_bounded(
    jobs: Sequence[Callable[[], T]],
    limit: int,
    *,
    on_result: Callable[[int, T], None] | None = None,
) -> list[T]:
    """Run jobs with at most ``limit`` in flight and return results in job order.

    Jobs start in list order. After the first failure no further job is
    started; jobs already running are allowed to finish, then the first
    failure is raised. ``on_result(index, result)`` runs on the calling
    thread as each job completes.
    """
    if limit < 1:
        raise ValueError("limit must be at least 1")
    if not jobs:
        return []

    results: list[T | None] = [None] * len(jobs)
    first_error: BaseException | None = None
    next_index = 0
    pending: dict[Future[T], int] = {}

    with ThreadPoolExecutor(max_workers=min(limit, len(jobs))) as executor:
        while next_index < len(jobs) and len(pending) < limit:
            pending[executor.submit(jobs[next_index])] = next_index
            next_index += 1

        while pending:
            done, _ = wait(pending, return_when=FIRST_COMPLETED)
            for future in done:
                index = pending.pop(future)
                exc = future.exception()
                if exc is not None:
                    if first_error is None:
                        first_error = exc
                    continue
                result = future.result()
                results[index] = result
                if on_result is not None and first_error is None:
                    on_result(index, result)
            while (
                first_error is None
                and next_index < len(jobs)
                and len(pending) < limit
            ):
                pending[executor.submit(jobs[next_index])] = next_index
                next_index += 1

    if first_error is not None:
        raise first_error
    return cast(list[T], results)
