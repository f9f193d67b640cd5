"""
백테스팅 엔진 모듈.

[ 역할 ]
    사전계산된 틱 목록(TickData)을 시간순으로 돌며 포트폴리오를 시뮬레이션하고 성과를 측정.
    시뮬레이션 자체는 엄격히 순차적이다 (틱 N+1은 틱 N의 포트폴리오를 본다).

[ 실행 흐름 ]
    run(ticks) 호출 시:
        1. SimulationContext 생성 (포트폴리오, 체결 기록, 수익률/자산 이력)
        2. 각 틱에 대해 step():
           → 시그널이 하나도 없으면 틱 전체를 건너뜀 (상태 변경 없음)
           → 포트폴리오 복사본에 phases.TICK_PHASES를 순서대로 적용
           → revalue()로 총자산 재계산, 직전 대비 수익률 기록
           → 복사본을 확정 (틱 단위 원자적 반영)
        3. 벤치마크 종목 가격을 초기자본 기준으로 정규화해 기록
        4. metrics.compute_metrics()로 성과 지표 계산 → BacktestResult

[ 의존성 ]
    - backtest/phases.py (틱 처리 단계)
    - data/portfolio.py::Portfolio (장부)
    - backtest/metrics.py::compute_metrics() (성과 계산)

[ 호출하는 곳 ]
    - run_backtest.py (진입점)
    - optimization/walk_forward.py (record_trades=False 경량 실행)
"""

from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from adaptive_backtest.backtest.metrics import PerformanceMetrics, compute_metrics, infer_periods_per_year
from adaptive_backtest.backtest.phases import TICK_PHASES, TickPhase
from adaptive_backtest.core.signal_types import SignalFamily, TickData
from adaptive_backtest.data.portfolio import Portfolio, TradeRecord
from adaptive_backtest.utils.config import BacktestConfig
from adaptive_backtest.utils.logger import get_logger

logger = get_logger("backtest")


@dataclass
class SimulationContext:
    """한 번의 시뮬레이션 실행 상태. 엔진 인스턴스 간에 공유되지 않는다."""
    portfolio: Portfolio
    trades: list[TradeRecord] = field(default_factory=list)
    returns: list[float] = field(default_factory=list)
    history: list[tuple[pd.Timestamp, float]] = field(default_factory=list)
    benchmark: list[tuple[pd.Timestamp, float]] = field(default_factory=list)
    benchmark_base: float | None = None
    skipped_ticks: int = 0


@dataclass
class BacktestResult:
    """시뮬레이션 결과. to_dict()로 JSON 저장 가능한 형태 변환."""
    start: pd.Timestamp | None
    end: pd.Timestamp | None
    portfolio_history: list[tuple[pd.Timestamp, float]]
    benchmark_series: list[tuple[pd.Timestamp, float]]
    trades: list[TradeRecord]
    returns: list[float]
    summary: PerformanceMetrics
    final_portfolio: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date_range": {
                "start": self.start.isoformat() if self.start is not None else None,
                "end": self.end.isoformat() if self.end is not None else None,
            },
            "portfolio_history": [
                {"timestamp": ts.isoformat(), "total_value": v} for ts, v in self.portfolio_history
            ],
            "benchmark_series": [
                {"timestamp": ts.isoformat(), "value": v} for ts, v in self.benchmark_series
            ],
            "trades": [t.to_dict() for t in self.trades],
            "summary": self.summary.to_dict(),
            "final_portfolio": self.final_portfolio,
        }


class BacktestEngine:
    """백테스팅 엔진. run()으로 시뮬레이션 실행.

    record_trades=False면 체결 기록과 체결 통계, 로그, 벤치마크를 쌓지 않는다 (최적화용 경량 실행).
    """

    def __init__(
        self,
        config: BacktestConfig,
        record_trades: bool = True,
        phases: tuple[TickPhase, ...] = TICK_PHASES,
    ):
        config.validate()
        self.config = config
        self.record_trades = record_trades
        self.phases = phases

    def run(self, ticks: list[TickData]) -> BacktestResult:
        """시뮬레이션 실행.

        Args:
            ticks: 시간순 TickData 목록 (backtest/signals.py에서 생성)

        Returns:
            BacktestResult
        """
        ctx = SimulationContext(portfolio=Portfolio(self.config.initial_capital))

        if not ticks:
            if self.record_trades:
                logger.warning("시뮬레이션할 틱이 없습니다.")
            return self._result(ctx, [])

        if self.record_trades:
            logger.info(
                f"백테스트 시작 ({self.config.mode}): "
                f"{ticks[0].timestamp} ~ {ticks[-1].timestamp} ({len(ticks)}틱)"
            )

        processed: list[pd.Timestamp] = []
        for tick in ticks:
            if self.step(ctx, tick):
                processed.append(tick.timestamp)

        result = self._result(ctx, processed)
        if self.record_trades:
            logger.info(
                f"백테스트 완료. 총 수익률: {result.summary.total_return:.2f}%, "
                f"샤프: {result.summary.sharpe_ratio:.2f}, 체결 {result.summary.total_trades}건"
                + (f", 건너뛴 틱 {ctx.skipped_ticks}" if ctx.skipped_ticks else "")
            )
        return result

    def step(self, ctx: SimulationContext, tick: TickData) -> bool:
        """1틱 처리. 처리했으면 True, 시그널이 없어 건너뛰었으면 False."""
        if not tick.snapshots:
            ctx.skipped_ticks += 1
            return False

        working = ctx.portfolio.copy()
        tick_trades: list[TradeRecord] = []
        for phase in self.phases:
            tick_trades.extend(phase(working, tick, self.config))

        prev_value = working.total_value
        new_value = working.revalue()
        ctx.returns.append((new_value - prev_value) / prev_value if prev_value > 0 else 0.0)
        ctx.history.append((tick.timestamp, new_value))
        ctx.portfolio = working

        if self.record_trades:
            ctx.trades.extend(tick_trades)
            for t in tick_trades:
                logger.debug(
                    f"[{t.timestamp}] {t.action} {t.symbol} {t.shares:.4f} @ {t.price:,.2f} ({t.reason})"
                )
            self._record_benchmark(ctx, tick)
        return True

    def _record_benchmark(self, ctx: SimulationContext, tick: TickData) -> None:
        """벤치마크 종목 가격을 첫 관측 가격 기준 초기자본으로 정규화."""
        price = tick.prices.get(self.config.benchmark_symbol)
        if not price:
            return
        if ctx.benchmark_base is None:
            ctx.benchmark_base = price
        ctx.benchmark.append(
            (tick.timestamp, price / ctx.benchmark_base * self.config.initial_capital)
        )

    def _result(self, ctx: SimulationContext, processed: list[pd.Timestamp]) -> BacktestResult:
        if self.config.family == SignalFamily.DAILY:
            periods_per_year = 252.0
        else:
            periods_per_year = infer_periods_per_year(processed)

        summary = compute_metrics(
            returns=ctx.returns,
            values=[v for _, v in ctx.history],
            trades=ctx.trades,
            initial_capital=self.config.initial_capital,
            periods_per_year=periods_per_year,
            risk_free_rate=self.config.risk_free_rate,
            benchmark_values=[v for _, v in ctx.benchmark] or None,
        )
        return BacktestResult(
            start=processed[0] if processed else None,
            end=processed[-1] if processed else None,
            portfolio_history=ctx.history,
            benchmark_series=ctx.benchmark,
            trades=ctx.trades,
            returns=ctx.returns,
            summary=summary,
            final_portfolio=ctx.portfolio.get_summary(),
        )
