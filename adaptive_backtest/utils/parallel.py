"""
프로세스 풀 병렬 실행 헬퍼.

[ 역할 ]
    종목별 시그널 계산, 가중치 그리드 평가처럼 서로 독립인 작업을 병렬로 실행.
    결과는 항상 입력 순서대로 돌려주므로 완료 순서와 무관하게 결정적이다.

[ 호출하는 곳 ]
    - backtest/signals.py::SignalPrecomputer (종목 단위)
    - optimization/walk_forward.py (가중치 조합 단위)
"""

import os
from concurrent.futures import ProcessPoolExecutor
from typing import Callable, Iterable, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def default_n_jobs(n_jobs: int | None = None) -> int:
    """작업 프로세스 수. None 또는 0 이하면 CPU 수 - 1."""
    if n_jobs is None or n_jobs <= 0:
        return max(1, (os.cpu_count() or 2) - 1)
    return int(max(1, n_jobs))


def parallel_map(
    fn: Callable[[T], R],
    items: Iterable[T],
    n_jobs: int | None = 1,
    chunksize: int = 1,
) -> list[R]:
    """fn을 items에 적용. n_jobs == 1이면 현재 프로세스에서 순차 실행.

    fn과 items는 pickle 가능해야 한다 (모듈 최상위 함수).
    """
    items = list(items)
    workers = default_n_jobs(n_jobs)

    if workers == 1 or len(items) <= 1:
        return [fn(x) for x in items]

    with ProcessPoolExecutor(max_workers=min(workers, len(items))) as ex:
        return list(ex.map(fn, items, chunksize=chunksize))
