"""
기술적 지표 계산 모듈.

[ 역할 ]
    가격/거래량 시퀀스 → 지표 값. 모든 함수는 순수 함수이며 상태가 없다.
    데이터가 부족하면 예외 대신 "계산 불가" 값(None)을 돌려준다.
    (예외: RSI는 50, VWAP은 zscore=0 중립 결과)

[ 제공 지표 ]
    sma / ema / ema_series   - 이동평균
    rsi                      - 최근 period개 변화량의 단순 평균 RSI
    macd                     - MACD 선/시그널/히스토그램 + 직전 히스토그램
    bollinger_bands          - 볼린저 밴드 (모표준편차), 밴드폭
    atr                      - 최근 period개 True Range 단순 평균
    adx                      - Wilder 평활 ADX
    rate_of_change           - N기간 변화율 (%)
    vwap_zscore              - 세션 VWAP과 현재가의 z-score
    zscore / population_std  - 공용 통계 헬퍼

[ 호출하는 곳 ]
    - strategies/*.py (전략 점수 계산)
    - analysis/regime.py (ADX, SMA로 레짐 판정)
    - backtest/signals.py (포지션 사이징용 ATR)
"""

from dataclasses import dataclass
from typing import Sequence

import numpy as np

MIN_BANDWIDTH = 0.01  # 볼린저 밴드폭 1% 미만이면 평균회귀 판단 생략


@dataclass(frozen=True)
class MACDResult:
    macd: float
    signal: float
    histogram: float
    prev_histogram: float | None


@dataclass(frozen=True)
class BollingerBands:
    upper: float
    middle: float
    lower: float
    std: float
    bandwidth: float   # (upper - lower) / middle

    def position(self, price: float) -> float:
        """밴드 내 위치. 하단 0, 상단 1."""
        span = self.upper - self.lower
        if span == 0:
            return 0.5
        return (price - self.lower) / span


@dataclass(frozen=True)
class VWAPResult:
    vwap: float
    zscore: float
    std: float
    volume: float


def _as_array(values: Sequence[float]) -> np.ndarray:
    return np.asarray(values, dtype=float)


# ─── 통계 헬퍼 ──────────────────────────────────────────────────────────────

def population_std(values: Sequence[float]) -> float:
    """모표준편차. 빈 입력은 0."""
    arr = _as_array(values)
    if arr.size == 0:
        return 0.0
    return float(np.std(arr))


def zscore(value: float, mean: float, std: float) -> float:
    """표준편차가 0이면 0."""
    if std == 0:
        return 0.0
    return (value - mean) / std


# ─── 이동평균 ───────────────────────────────────────────────────────────────

def sma(values: Sequence[float], period: int) -> float | None:
    """최근 period개의 단순 평균."""
    arr = _as_array(values)
    if period <= 0 or arr.size < period:
        return None
    return float(arr[-period:].mean())


def ema_series(values: Sequence[float], period: int) -> list[float]:
    """지수이동평균 시계열. 첫 값은 처음 period개의 SMA, 이후 k = 2/(period+1)."""
    arr = _as_array(values)
    if period <= 0 or arr.size < period:
        return []
    k = 2 / (period + 1)
    prev = float(arr[:period].mean())
    out = [prev]
    for x in arr[period:]:
        prev = float(x) * k + prev * (1 - k)
        out.append(prev)
    return out


def ema(values: Sequence[float], period: int) -> float | None:
    """마지막 EMA 값."""
    series = ema_series(values, period)
    return series[-1] if series else None


# ─── 오실레이터 ─────────────────────────────────────────────────────────────

def rsi(values: Sequence[float], period: int = 14) -> float:
    """RSI. 최근 period개 변화량 기준.

    데이터 부족(period+1 미만)이면 중립값 50, 하락이 전혀 없으면 100.
    """
    arr = _as_array(values)
    if arr.size < period + 1:
        return 50.0
    changes = np.diff(arr)[-period:]
    avg_gain = float(changes[changes > 0].sum()) / period
    avg_loss = float(-changes[changes < 0].sum()) / period
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100 - 100 / (1 + rs)


def macd(
    values: Sequence[float],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> MACDResult | None:
    """MACD. slow + signal개 미만이면 None.

    빠른/느린 EMA 모두 자기 기간의 SMA로 시작하며,
    MACD 선은 느린 EMA가 갱신되기 시작한 시점부터 쌓인다.
    """
    arr = _as_array(values)
    if arr.size < slow + signal:
        return None

    k_fast = 2 / (fast + 1)
    k_slow = 2 / (slow + 1)
    ema_fast = float(arr[:fast].mean())
    ema_slow = float(arr[:slow].mean())
    macd_line: list[float] = []
    for i in range(1, arr.size):
        price = float(arr[i])
        if i >= fast:
            ema_fast = price * k_fast + ema_fast * (1 - k_fast)
        if i >= slow:
            ema_slow = price * k_slow + ema_slow * (1 - k_slow)
            macd_line.append(ema_fast - ema_slow)

    if len(macd_line) < signal:
        return None

    def _signal_of(line: list[float]) -> float:
        k_sig = 2 / (signal + 1)
        sig = sum(line[:signal]) / signal
        for m in line[signal:]:
            sig = m * k_sig + sig * (1 - k_sig)
        return sig

    sig_value = _signal_of(macd_line)
    macd_value = macd_line[-1]

    prev_histogram = None
    if len(macd_line) >= 2:
        prev_line = macd_line[:-1]
        # 직전 시점의 시그널: 마지막 MACD 값을 빼고 다시 계산
        if len(prev_line) >= signal:
            prev_histogram = prev_line[-1] - _signal_of(prev_line)
        else:
            prev_histogram = prev_line[-1] - sum(macd_line[:signal]) / signal

    return MACDResult(
        macd=macd_value,
        signal=sig_value,
        histogram=macd_value - sig_value,
        prev_histogram=prev_histogram,
    )


def bollinger_bands(
    values: Sequence[float],
    period: int = 20,
    mult: float = 2.0,
) -> BollingerBands | None:
    """볼린저 밴드. 최근 period개, 모표준편차 기준."""
    arr = _as_array(values)
    if arr.size < period:
        return None
    window = arr[-period:]
    mean = float(window.mean())
    std = float(np.std(window))
    bandwidth = (2 * mult * std) / mean if mean != 0 else 0.0
    return BollingerBands(
        upper=mean + mult * std,
        middle=mean,
        lower=mean - mult * std,
        std=std,
        bandwidth=bandwidth,
    )


# ─── 변동성 / 추세 강도 ─────────────────────────────────────────────────────

def _true_ranges(highs: np.ndarray, lows: np.ndarray, closes: np.ndarray) -> np.ndarray:
    """인덱스 1부터의 True Range 배열."""
    prev_close = closes[:-1]
    return np.maximum.reduce([
        highs[1:] - lows[1:],
        np.abs(highs[1:] - prev_close),
        np.abs(lows[1:] - prev_close),
    ])


def atr(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> float | None:
    """ATR. 최근 period개 True Range의 단순 평균. period+1개 미만이면 None."""
    h, lo, c = _as_array(highs), _as_array(lows), _as_array(closes)
    if h.size < period + 1 or not (h.size == lo.size == c.size):
        return None
    tr = _true_ranges(h, lo, c)
    return float(tr[-period:].mean())


def adx(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> float | None:
    """ADX (Wilder 평활). 2*period+1개 미만이면 None."""
    h, lo, c = _as_array(highs), _as_array(lows), _as_array(closes)
    if h.size < period * 2 + 1 or not (h.size == lo.size == c.size):
        return None

    up_move = h[1:] - h[:-1]
    down_move = lo[:-1] - lo[1:]
    plus_dm = np.where((up_move > down_move) & (up_move > 0), up_move, 0.0)
    minus_dm = np.where((down_move > up_move) & (down_move > 0), down_move, 0.0)
    tr = _true_ranges(h, lo, c)

    smooth_plus = float(plus_dm[:period].sum())
    smooth_minus = float(minus_dm[:period].sum())
    smooth_tr = float(tr[:period].sum())
    dx: list[float] = []
    for i in range(period, plus_dm.size):
        smooth_plus = smooth_plus - smooth_plus / period + float(plus_dm[i])
        smooth_minus = smooth_minus - smooth_minus / period + float(minus_dm[i])
        smooth_tr = smooth_tr - smooth_tr / period + float(tr[i])
        plus_di = smooth_plus / smooth_tr * 100 if smooth_tr > 0 else 0.0
        minus_di = smooth_minus / smooth_tr * 100 if smooth_tr > 0 else 0.0
        di_sum = plus_di + minus_di
        dx.append(abs(plus_di - minus_di) / di_sum * 100 if di_sum > 0 else 0.0)

    if len(dx) < period:
        return None
    value = sum(dx[:period]) / period
    for d in dx[period:]:
        value = (value * (period - 1) + d) / period
    return value


def rate_of_change(values: Sequence[float], period: int) -> float | None:
    """period 기간 변화율 (%). 과거 가격이 0이면 0."""
    arr = _as_array(values)
    if arr.size <= period:
        return None
    current = float(arr[-1])
    past = float(arr[-1 - period])
    if past == 0:
        return 0.0
    return (current - past) / past * 100


# ─── 거래량 가중 ────────────────────────────────────────────────────────────

def vwap_zscore(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    volumes: Sequence[float],
) -> VWAPResult:
    """세션 VWAP 대비 현재가 z-score.

    전형가격 (H+L+C)/3 를 거래량 가중 평균하고,
    VWAP 주변 전형가격의 모표준편차로 현재 종가를 표준화한다.
    누적 거래량이 0이거나 표준편차가 0이면 zscore=0.
    """
    h, lo, c, v = _as_array(highs), _as_array(lows), _as_array(closes), _as_array(volumes)
    if c.size == 0:
        return VWAPResult(vwap=0.0, zscore=0.0, std=0.0, volume=0.0)

    typical = (h + lo + c) / 3
    cum_volume = float(v.sum())
    if cum_volume == 0:
        return VWAPResult(vwap=0.0, zscore=0.0, std=0.0, volume=0.0)

    vwap = float((typical * v).sum() / cum_volume)
    std = float(np.sqrt(np.mean((typical - vwap) ** 2)))
    return VWAPResult(
        vwap=vwap,
        zscore=zscore(float(c[-1]), vwap, std),
        std=std,
        volume=cum_volume,
    )
