"""
시그널 사전계산 모듈.

[ 역할 ]
    시뮬레이션 전에 종목 × 틱의 전략 시그널과 결합 결과, 가격, ATR을 모두 계산해
    TickData 목록으로 만든다. 종목 간에는 서로 독립이므로 프로세스 풀로 병렬 계산 가능.

[ 틱 스케줄 ]
    DAILY  : 벤치마크 종목(없으면 전 종목 합집합)의 거래일. start_date가 없으면 앞 warmup_bars일 제외.
    REGIME : 분봉 타임라인을 날짜별로 묶고, 6봉 이상인 세션에서 trade_interval_bars봉마다 1틱.

[ 종목별 계산 (compute_symbol) ]
    DAILY  : 해당일까지 일봉 → 4개 전략 → 고정 가중치 결합. 가격은 당일 종가 (없으면 None)
    REGIME : 해당 시각까지 분봉(최근 intraday_lookback개) + 당일 세션 + 전일까지 일봉
             → 레짐 판정 → 4개 전략 → 레짐 가중치 결합. 가격은 마지막 분봉 종가, ATR 동반

[ 호출하는 곳 ]
    - run_backtest.py
    - optimization/walk_forward.py (원본 시그널을 한 번 계산한 뒤 가중치만 바꿔 recombine)
"""

from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from adaptive_backtest.analysis import indicators
from adaptive_backtest.analysis.combiner import SignalCombiner
from adaptive_backtest.analysis.regime import detect_regime
from adaptive_backtest.core.signal_types import Regime, SignalFamily, SignalSnapshot, TickData
from adaptive_backtest.core.trading_strategy import MarketContext
from adaptive_backtest.data.market_data import MarketDataManager
from adaptive_backtest.strategies import strategies_for
from adaptive_backtest.utils.config import BacktestConfig, ConfigError, StrategyConfig, parse_timestamp
from adaptive_backtest.utils.logger import get_logger
from adaptive_backtest.utils.parallel import parallel_map

logger = get_logger("signals")

MIN_SESSION_STAMPS = 6  # 이보다 짧은 세션(반일장 데이터 누락 등)은 거래하지 않음

SymbolTick = tuple[SignalSnapshot | None, float | None, float | None]   # (시그널, 가격, ATR)


@dataclass(frozen=True)
class SymbolJob:
    """종목 1개 계산 단위. 프로세스 풀로 넘어가므로 pickle 가능한 값만 담는다."""
    symbol: str
    bars: pd.DataFrame
    ticks: list[pd.Timestamp]
    config: BacktestConfig
    daily_bars: pd.DataFrame | None = None
    weights: dict[str, float] | None = None
    regime_weights: dict[Regime, dict[str, float]] | None = None
    params: dict[str, dict[str, Any]] = field(default_factory=dict)


def compute_symbol(job: SymbolJob) -> list[SymbolTick]:
    """종목 1개의 틱별 (시그널, 가격, ATR). job.ticks와 같은 순서."""
    config = job.config
    family = config.family
    strategies = strategies_for(family, job.params)
    combiner = SignalCombiner(family, job.weights, job.regime_weights)
    bars = MarketDataManager({job.symbol: job.bars})
    daily = MarketDataManager({job.symbol: job.daily_bars}) if job.daily_bars is not None else None

    out: list[SymbolTick] = []
    for ts in job.ticks:
        if family == SignalFamily.DAILY:
            out.append(_daily_tick(job.symbol, ts, bars, strategies, combiner, config))
        else:
            out.append(_regime_tick(job.symbol, ts, bars, daily, strategies, combiner, config))
    return out


def _daily_tick(symbol, ts, bars, strategies, combiner, config) -> SymbolTick:
    price = bars.price_on(symbol, ts)
    history = bars.history(symbol, ts)
    if len(history) < config.warmup_bars:
        return None, price, None

    ctx = MarketContext(symbol=symbol, timestamp=ts, bars=history)
    signals = {s.name: s.evaluate(ctx) for s in strategies}
    return combiner.combine(symbol, ts, signals), price, None


def _regime_tick(symbol, ts, bars, daily, strategies, combiner, config) -> SymbolTick:
    history = bars.history(symbol, ts)
    if len(history) < config.min_intraday_bars:
        return None, None, None
    session = bars.session(symbol, ts)
    if len(session) < config.min_session_bars:
        return None, None, None

    recent = history.tail(config.intraday_lookback)
    price = float(recent["close"].iat[-1])
    # 당일 일봉은 장 마감 후에야 확정되므로 전일까지만 사용
    daily_history = daily.history(symbol, ts.normalize(), inclusive=False) if daily is not None else None
    regime = detect_regime(daily_history)

    ctx = MarketContext(
        symbol=symbol,
        timestamp=ts,
        bars=recent,
        daily_bars=daily_history,
        session_bars=session,
    )
    signals = {s.name: s.evaluate(ctx) for s in strategies}
    atr = indicators.atr(
        recent["high"].tolist(), recent["low"].tolist(), recent["close"].tolist(), config.atr_period
    )
    return combiner.combine(symbol, ts, signals, regime), price, atr


class SignalPrecomputer:
    """틱 스케줄 생성 + 종목별 시그널 계산 + TickData 조립."""

    def __init__(
        self,
        config: BacktestConfig,
        strategy_config: StrategyConfig | None = None,
        n_jobs: int = 1,
    ):
        config.validate()
        strategy_config = strategy_config or StrategyConfig()
        strategy_config.validate()
        self.config = config
        self.strategy_config = strategy_config
        self.n_jobs = n_jobs

    @property
    def family(self) -> SignalFamily:
        return self.config.family

    def schedule(
        self,
        daily: MarketDataManager,
        intraday: MarketDataManager | None = None,
    ) -> list[pd.Timestamp]:
        """틱 시각 목록."""
        start = parse_timestamp(self.config.start_date)
        end = parse_timestamp(self.config.end_date)

        if self.family == SignalFamily.DAILY:
            calendar = daily.calendar(start, end, self.config.benchmark_symbol)
            if start is None:
                calendar = calendar[self.config.warmup_bars:]
            return calendar

        if intraday is None:
            raise ConfigError("regime 모드에는 분봉 데이터가 필요합니다.")
        sessions: dict[pd.Timestamp, list[pd.Timestamp]] = {}
        for ts in intraday.timeline():
            sessions.setdefault(ts.normalize(), []).append(ts)

        interval = self.config.trade_interval_bars
        ticks = []
        for day in sorted(sessions):
            if start is not None and day < start.normalize():
                continue
            if end is not None and day > end.normalize():
                continue
            stamps = sessions[day]
            if len(stamps) < MIN_SESSION_STAMPS:
                continue
            ticks.extend(stamps[interval::interval])
        return ticks

    def jobs(
        self,
        ticks: list[pd.Timestamp],
        daily: MarketDataManager,
        intraday: MarketDataManager | None = None,
    ) -> list[SymbolJob]:
        weights = self.strategy_config.weights or None
        regime_weights = self.strategy_config.regime_table()
        params = self.strategy_config.params

        if self.family == SignalFamily.DAILY:
            return [
                SymbolJob(symbol, daily.frame(symbol), ticks, self.config,
                          weights=weights, params=params)
                for symbol in daily.symbols
            ]
        return [
            SymbolJob(
                symbol,
                intraday.frame(symbol),
                ticks,
                self.config,
                daily_bars=daily.frame(symbol) if symbol in daily else None,
                regime_weights=regime_weights,
                params=params,
            )
            for symbol in intraday.symbols
        ]

    def build(
        self,
        daily: MarketDataManager,
        intraday: MarketDataManager | None = None,
    ) -> list[TickData]:
        """전체 TickData 목록 생성."""
        ticks = self.schedule(daily, intraday)
        if not ticks:
            logger.warning("틱 스케줄이 비어 있습니다. 기간/데이터를 확인하세요.")
            return []

        jobs = self.jobs(ticks, daily, intraday)
        logger.info(f"시그널 사전계산: {len(jobs)}종목 × {len(ticks)}틱 (n_jobs={self.n_jobs})")
        per_symbol = parallel_map(compute_symbol, jobs, n_jobs=self.n_jobs)

        result = []
        for i, ts in enumerate(ticks):
            snapshots, prices, atr = {}, {}, {}
            for job, rows in zip(jobs, per_symbol):
                snapshot, price, atr_value = rows[i]
                if snapshot is not None:
                    snapshots[job.symbol] = snapshot
                if price:
                    prices[job.symbol] = price
                if atr_value:
                    atr[job.symbol] = atr_value
            result.append(TickData(timestamp=ts, snapshots=snapshots, prices=prices, atr=atr))
        return result


def recombine_ticks(ticks: list[TickData], combiner: SignalCombiner) -> list[TickData]:
    """전략 시그널은 재사용하고 결합 점수만 다시 계산한 TickData 목록."""
    return [
        TickData(
            timestamp=t.timestamp,
            snapshots={s: combiner.recombine(snap) for s, snap in t.snapshots.items()},
            prices=t.prices,
            atr=t.atr,
        )
        for t in ticks
    ]


def slice_ticks(ticks: list[TickData], start: pd.Timestamp, end: pd.Timestamp) -> list[TickData]:
    """start ≤ timestamp ≤ end 인 틱. 날짜만 준 end는 그날 하루 전체를 포함."""
    if end == end.normalize():
        end = end + pd.Timedelta(days=1) - pd.Timedelta(microseconds=1)
    return [t for t in ticks if start <= t.timestamp <= end]
