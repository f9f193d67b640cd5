"""
시장 레짐 판정 모듈.

[ 판정 규칙 ]
    일봉 60개 미만               → UNKNOWN
    ADX/SMA20/SMA50 계산 불가     → UNKNOWN
    ADX(14) > 25, SMA20 > SMA50   → TRENDING_UP
    ADX(14) > 25, 그 외           → TRENDING_DOWN
    ADX(14) ≤ 25                 → RANGE_BOUND

[ 호출하는 곳 ]
    - backtest/signals.py (REGIME 모드에서 종목 × 틱마다)
"""

import pandas as pd

from adaptive_backtest.analysis import indicators
from adaptive_backtest.core.signal_types import Regime

MIN_REGIME_BARS = 60
ADX_TREND_THRESHOLD = 25.0


def classify(closes: list[float], highs: list[float], lows: list[float]) -> Regime:
    """일봉 종가/고가/저가 → Regime."""
    if len(closes) < MIN_REGIME_BARS:
        return Regime.UNKNOWN

    adx_value = indicators.adx(highs, lows, closes, 14)
    if adx_value is None:
        return Regime.UNKNOWN

    sma20 = indicators.sma(closes, 20)
    sma50 = indicators.sma(closes, 50)
    if sma20 is None or sma50 is None:
        return Regime.UNKNOWN

    if adx_value > ADX_TREND_THRESHOLD:
        return Regime.TRENDING_UP if sma20 > sma50 else Regime.TRENDING_DOWN
    return Regime.RANGE_BOUND


def detect_regime(daily_bars: pd.DataFrame | None) -> Regime:
    """일봉 DataFrame → Regime. 입력이 없으면 UNKNOWN."""
    if daily_bars is None or daily_bars.empty:
        return Regime.UNKNOWN
    return classify(
        daily_bars["close"].tolist(),
        daily_bars["high"].tolist(),
        daily_bars["low"].tolist(),
    )
