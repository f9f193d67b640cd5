import numpy as np
import pandas as pd
import pytest

from adaptive_backtest.core.signal_types import (
    SignalFamily,
    SignalSnapshot,
    StrategySignal,
    TickData,
)
from adaptive_backtest.analysis.combiner import recommend


def daily_frame(closes, start="2023-01-02", volume=1_000_000.0, spread=0.01) -> pd.DataFrame:
    closes = np.asarray(closes, dtype=float)
    dates = pd.bdate_range(start=start, periods=len(closes))
    return pd.DataFrame({
        "timestamp": dates,
        "open": closes,
        "high": closes * (1 + spread),
        "low": closes * (1 - spread),
        "close": closes,
        "volume": np.full(len(closes), volume),
    })


def random_walk(n, seed, start_price=100.0, drift=0.0005, vol=0.015):
    rng = np.random.RandomState(seed)
    return start_price * np.cumprod(1 + rng.normal(drift, vol, n))


def intraday_frame(days, seed, start_price=100.0, bars_per_day=78) -> pd.DataFrame:
    rng = np.random.RandomState(seed)
    offsets = pd.to_timedelta(np.arange(bars_per_day) * 5, unit="min") + pd.Timedelta(hours=9, minutes=30)
    frames = []
    price = start_price
    for day in days:
        closes = price * np.cumprod(1 + rng.normal(0, 0.002, bars_per_day))
        frames.append(pd.DataFrame({
            "timestamp": pd.Timestamp(day) + offsets,
            "open": closes,
            "high": closes * 1.001,
            "low": closes * 0.999,
            "close": closes,
            "volume": rng.randint(1_000, 5_000, bars_per_day).astype(float),
        }))
        price = closes[-1]
    return pd.concat(frames, ignore_index=True)


def snapshot(symbol, combined, family=SignalFamily.DAILY, regime=None, recommendation=None, timestamp=None):
    return SignalSnapshot(
        symbol=symbol,
        timestamp=timestamp or pd.Timestamp("2024-01-02"),
        family=family,
        signals={"momentum": StrategySignal("momentum", combined, 0.7, "")},
        regime=regime,
        combined=combined,
        recommendation=recommendation or recommend(combined, family),
    )


def tick(snapshots, prices, atr=None, timestamp="2024-01-02"):
    return TickData(
        timestamp=pd.Timestamp(timestamp),
        snapshots={s.symbol: s for s in snapshots},
        prices=prices,
        atr=atr or {},
    )


@pytest.fixture
def uptrend_closes():
    return [100 * 1.01 ** i for i in range(80)]


@pytest.fixture
def downtrend_closes():
    return [100 * 0.99 ** i for i in range(80)]


@pytest.fixture
def daily_frames():
    """SPY + 종목 2개, 220 영업일."""
    return {
        "SPY": daily_frame(random_walk(220, seed=1, start_price=400)),
        "AAA": daily_frame(random_walk(220, seed=2, drift=0.002)),
        "BBB": daily_frame(random_walk(220, seed=3, drift=-0.001)),
    }


@pytest.fixture
def intraday_frames():
    """3 세션 5분봉 + 직전 80 영업일 일봉."""
    days = pd.bdate_range("2024-05-01", periods=3)
    intraday = {
        "SPY": intraday_frame(days, seed=11, start_price=500),
        "AAA": intraday_frame(days, seed=12),
    }
    daily = {
        "SPY": daily_frame(random_walk(80, seed=21, start_price=500), end_before(days[0], 80)),
        "AAA": daily_frame(random_walk(80, seed=22), end_before(days[0], 80)),
    }
    return daily, intraday


def end_before(day, n):
    """day 직전에 끝나는 n 영업일 구간의 시작일."""
    return pd.bdate_range(end=pd.Timestamp(day) - pd.Timedelta(days=1), periods=n)[0]


@pytest.fixture
def make_daily_frame():
    return daily_frame


@pytest.fixture
def make_intraday_frame():
    return intraday_frame


@pytest.fixture
def make_snapshot():
    return snapshot


@pytest.fixture
def make_tick():
    return tick



@pytest.fixture
def make_random_walk():
    return random_walk
