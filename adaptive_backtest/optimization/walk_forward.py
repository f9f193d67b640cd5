"""
워크포워드 가중치 최적화 모듈.

[ 역할 ]
    일봉 4전략 결합 가중치를 학습 구간에서 그리드 탐색하고, 상위 N개를 평균낸
    "평활화" 가중치를 검증 구간(out-of-sample)에서 평가한다.
    단일 최고 조합 대신 평활화 가중치를 쓰는 것은 학습 구간 과적합을 줄이기 위함.

[ 실행 흐름 ]
    run(ticks) 호출 시:
        1. OptimizerConfig.ranges()로 학습/검증 구간 확인 (겹치면 ConfigError)
        2. 사전계산된 틱을 두 구간으로 분리
        3. generate_weight_grid()로 후보 생성 (기본 4개 가중치 → 1547개)
        4. 후보마다 evaluate_weights(): recombine → 경량 시뮬레이션 (n_jobs > 1이면 프로세스 풀)
        5. rank_results(): 총수익률 내림차순, 차이가 tolerance 이내면 샤프 내림차순
        6. 상위 top_n개 smooth_weights() → 평활화 가중치
        7. 검증 구간에서 평활화 가중치 / 기본 가중치를 각각 전체 기록 모드로 실행해 비교

[ 의존성 ]
    - backtest/signals.py::recombine_ticks, slice_ticks
    - backtest/engine.py::BacktestEngine
    - analysis/combiner.py::SignalCombiner

[ 호출하는 곳 ]
    - run_backtest.py --optimize
"""

import itertools
from dataclasses import dataclass, field
from functools import cmp_to_key, partial
from typing import Any

from adaptive_backtest.analysis.combiner import DEFAULT_DAILY_WEIGHTS, SignalCombiner
from adaptive_backtest.backtest.engine import BacktestEngine, BacktestResult
from adaptive_backtest.backtest.signals import recombine_ticks, slice_ticks
from adaptive_backtest.core.signal_types import SignalFamily, TickData
from adaptive_backtest.strategies import list_strategies
from adaptive_backtest.utils.config import (
    BacktestConfig,
    ConfigError,
    OptimizerConfig,
    StrategyConfig,
)
from adaptive_backtest.utils.logger import get_logger
from adaptive_backtest.utils.parallel import default_n_jobs, parallel_map

logger = get_logger("optimizer")

WEIGHT_DECIMALS = 2


@dataclass
class WeightResult:
    """후보 가중치 1개의 학습 구간 성과."""
    weights: dict[str, float]
    total_return: float
    sharpe_ratio: float
    max_drawdown: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "weights": self.weights,
            "total_return": self.total_return,
            "sharpe_ratio": self.sharpe_ratio,
            "max_drawdown": self.max_drawdown,
        }


@dataclass
class WalkForwardResult:
    combinations_tested: int
    top_results: list[WeightResult]
    best_weights: dict[str, float]
    smoothed_weights: dict[str, float]
    in_sample: WeightResult
    out_of_sample: BacktestResult
    baseline: BacktestResult
    baseline_weights: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "combinations_tested": self.combinations_tested,
            "top_results": [r.to_dict() for r in self.top_results],
            "best_weights": self.best_weights,
            "smoothed_weights": self.smoothed_weights,
            "baseline_weights": self.baseline_weights,
            "in_sample": self.in_sample.to_dict(),
            "out_of_sample": self.out_of_sample.to_dict(),
            "baseline": self.baseline.to_dict(),
        }

    def summary(self) -> str:
        oos = self.out_of_sample.summary
        base = self.baseline.summary
        lines = [
            "=" * 50,
            "워크포워드 최적화 결과",
            "=" * 50,
            f"테스트한 조합:    {self.combinations_tested:>12d}",
            f"최고 조합:       {_format_weights(self.best_weights)}",
            f"평활화 가중치:    {_format_weights(self.smoothed_weights)}",
            f"학습 구간 수익률: {self.in_sample.total_return:>12.2f}%  (샤프 {self.in_sample.sharpe_ratio:.2f})",
            "-" * 50,
            f"{'검증 구간':<12}{'평활화':>12}{'기본 가중치':>14}",
            f"{'총 수익률':<12}{oos.total_return:>11.2f}%{base.total_return:>13.2f}%",
            f"{'샤프':<12}{oos.sharpe_ratio:>12.2f}{base.sharpe_ratio:>14.2f}",
            f"{'MDD':<12}{oos.max_drawdown:>11.2f}%{base.max_drawdown:>13.2f}%",
            f"{'승률':<12}{oos.win_rate:>11.2f}%{base.win_rate:>13.2f}%",
            f"{'체결 수':<12}{oos.total_trades:>12d}{base.total_trades:>14d}",
            "=" * 50,
        ]
        return "\n".join(lines)


def _format_weights(weights: dict[str, float]) -> str:
    return ", ".join(f"{k}={v:.2f}" for k, v in weights.items())


# ─── 그리드 ─────────────────────────────────────────────────────────────────

def generate_weight_grid(
    names: list[str],
    step: float = 0.05,
    min_weight: float = 0.0,
    max_weight: float = 0.70,
) -> list[dict[str, float]]:
    """앞 len(names)-1개 가중치를 step 단위로 열거하고 마지막은 1 - 합계.

    부동소수 누적 오차를 피하려고 정수 단위(1/step)로 계산한다.
    마지막 가중치가 [min_weight, max_weight]를 벗어나는 조합은 버린다.
    """
    units = round(1 / step)
    lo = round(min_weight / step)
    hi = round(max_weight / step)

    grid = []
    for head in itertools.product(range(lo, hi + 1), repeat=len(names) - 1):
        last = units - sum(head)
        if not lo <= last <= hi:
            continue
        grid.append({
            name: round(u * step, 4) for name, u in zip(names, (*head, last))
        })
    return grid


# ─── 평가 / 순위 ────────────────────────────────────────────────────────────

def evaluate_weights(
    weights: dict[str, float],
    ticks: list[TickData],
    config: BacktestConfig,
) -> WeightResult:
    """후보 가중치로 결합 점수만 다시 계산해 경량 시뮬레이션. 프로세스 풀에서 호출됨."""
    combiner = SignalCombiner(SignalFamily.DAILY, weights)
    result = BacktestEngine(config, record_trades=False).run(recombine_ticks(ticks, combiner))
    return WeightResult(
        weights=weights,
        total_return=result.summary.total_return,
        sharpe_ratio=result.summary.sharpe_ratio,
        max_drawdown=result.summary.max_drawdown,
    )


def rank_results(results: list[WeightResult], tolerance: float = 0.01) -> list[WeightResult]:
    """총수익률(%) 내림차순. 차이가 tolerance 이내면 샤프 내림차순.

    안정 정렬이므로 완전히 같은 후보는 그리드 순서를 유지한다.
    """
    def compare(a: WeightResult, b: WeightResult) -> int:
        diff = a.total_return - b.total_return
        if abs(diff) > tolerance:
            return -1 if diff > 0 else 1
        if a.sharpe_ratio != b.sharpe_ratio:
            return -1 if a.sharpe_ratio > b.sharpe_ratio else 1
        return 0

    return sorted(results, key=cmp_to_key(compare))


def smooth_weights(top: list[dict[str, float]], names: list[str]) -> dict[str, float]:
    """성분별 평균 → 소수 2자리 반올림 → 합이 정확히 1.0이 되도록 가장 큰 가중치 보정."""
    if not top:
        raise ValueError("평활화할 가중치가 없습니다.")

    smoothed = {
        name: round(sum(w.get(name, 0.0) for w in top) / len(top), WEIGHT_DECIMALS)
        for name in names
    }
    residual = round(1.0 - sum(smoothed.values()), WEIGHT_DECIMALS)
    if residual:
        largest = max(names, key=lambda n: abs(smoothed[n]))
        smoothed[largest] = round(smoothed[largest] + residual, WEIGHT_DECIMALS)
    return smoothed


# ─── 최적화기 ───────────────────────────────────────────────────────────────

class WalkForwardOptimizer:
    """학습 구간 그리드 탐색 + 검증 구간 평가."""

    def __init__(
        self,
        config: BacktestConfig,
        optimizer_config: OptimizerConfig,
        strategy_config: StrategyConfig | None = None,
    ):
        config.validate()
        optimizer_config.validate()
        if config.family != SignalFamily.DAILY:
            raise ConfigError("가중치 최적화는 daily 모드에서만 지원합니다.")
        known = set(list_strategies(SignalFamily.DAILY))
        unknown = [n for n in optimizer_config.weight_names if n not in known]
        if unknown:
            raise ConfigError(f"알 수 없는 전략 가중치: {unknown}")

        self.config = config
        self.optimizer_config = optimizer_config
        self.strategy_config = strategy_config or StrategyConfig()

    def run(self, ticks: list[TickData]) -> WalkForwardResult:
        """사전계산된 일봉 틱 전체를 받아 워크포워드 최적화 실행."""
        opt = self.optimizer_config
        (train_start, train_end), (test_start, test_end) = opt.ranges()
        train = slice_ticks(ticks, train_start, train_end)
        test = slice_ticks(ticks, test_start, test_end)
        if not train:
            raise ConfigError(f"학습 구간({opt.train_start}~{opt.train_end})에 데이터가 없습니다.")
        if not test:
            raise ConfigError(f"검증 구간({opt.test_start}~{opt.test_end})에 데이터가 없습니다.")

        grid = generate_weight_grid(opt.weight_names, opt.step, opt.min_weight, opt.max_weight)
        if not grid:
            raise ConfigError("가중치 그리드가 비어 있습니다. step/min_weight/max_weight를 확인하세요.")

        workers = default_n_jobs(opt.n_jobs)
        logger.info(
            f"워크포워드 시작: 학습 {len(train)}틱, 검증 {len(test)}틱, "
            f"조합 {len(grid)}개 (workers={workers})"
        )

        results = parallel_map(
            partial(evaluate_weights, ticks=train, config=self.config),
            grid,
            n_jobs=workers,
            chunksize=max(1, len(grid) // (workers * 4)),
        )
        ranked = rank_results(results, opt.return_tolerance)
        top = ranked[:opt.top_n]
        for i, r in enumerate(top, 1):
            logger.info(
                f"  #{i} {_format_weights(r.weights)} → "
                f"수익률 {r.total_return:.2f}%, 샤프 {r.sharpe_ratio:.2f}, MDD {r.max_drawdown:.2f}%"
            )

        smoothed = smooth_weights([r.weights for r in top], opt.weight_names)
        logger.info(f"평활화 가중치: {_format_weights(smoothed)}")

        in_sample = evaluate_weights(smoothed, train, self.config)
        baseline_weights = dict(self.strategy_config.weights or DEFAULT_DAILY_WEIGHTS)
        out_of_sample = self._run_test(test, smoothed)
        baseline = self._run_test(test, baseline_weights)

        logger.info(
            f"검증 구간 수익률: 평활화 {out_of_sample.summary.total_return:.2f}% / "
            f"기본 {baseline.summary.total_return:.2f}%"
        )
        return WalkForwardResult(
            combinations_tested=len(grid),
            top_results=top,
            best_weights=ranked[0].weights,
            smoothed_weights=smoothed,
            in_sample=in_sample,
            out_of_sample=out_of_sample,
            baseline=baseline,
            baseline_weights=baseline_weights,
        )

    def _run_test(self, ticks: list[TickData], weights: dict[str, float]) -> BacktestResult:
        combiner = SignalCombiner(SignalFamily.DAILY, weights)
        return BacktestEngine(self.config).run(recombine_ticks(ticks, combiner))
