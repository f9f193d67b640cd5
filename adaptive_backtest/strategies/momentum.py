"""
모멘텀 전략 (DAILY 패밀리).

[ 점수 구성 ]
    - SMA20 / SMA50 대비 현재가 괴리율 (등급화, 각 최대 ±0.2)
    - 골든/데드 크로스 (SMA20 vs SMA50, ±0.2)
    - MACD 부호 (EMA12 - EMA26, ±0.15)
    - 5일 / 20일 변화율 (등급화, ±0.1 / ±0.15)
    합산 후 [-1, 1] 클램프, 신뢰도 0.7 고정. 최소 50봉.
"""

from adaptive_backtest.analysis import indicators
from adaptive_backtest.core.signal_types import SignalFamily, StrategySignal
from adaptive_backtest.core.trading_strategy import MarketContext, SignalStrategy, clamp
from adaptive_backtest.strategies import register


def _graded(value: float, scale: float, cap: float) -> float:
    """value * scale 를 ±cap 으로 자른다."""
    return clamp(value * scale, -cap, cap)


@register("momentum", SignalFamily.DAILY)
class MomentumStrategy(SignalStrategy):
    """이동평균 정렬 + 변화율 기반 추세 추종."""

    MIN_BARS = 50
    DEFAULT_PARAMS = {
        "confidence": 0.7,
    }

    def __init__(self, params=None):
        super().__init__(name="momentum", family=SignalFamily.DAILY, params=params)

    def generate_signal(self, context: MarketContext) -> StrategySignal:
        closes = context.closes
        price = closes[-1]
        sma20 = indicators.sma(closes, 20)
        sma50 = indicators.sma(closes, 50)
        ema12 = indicators.ema(closes, 12)
        ema26 = indicators.ema(closes, 26)
        roc5 = indicators.rate_of_change(closes, 5)
        roc20 = indicators.rate_of_change(closes, 20)

        score = 0.0
        reasons = []

        # 이동평균 괴리율: 5% 괴리면 상한
        dist20 = (price - sma20) / sma20 if sma20 else 0.0
        dist50 = (price - sma50) / sma50 if sma50 else 0.0
        score += _graded(dist20, 4.0, 0.2)
        score += _graded(dist50, 2.5, 0.2)
        reasons.append(f"SMA20 {dist20 * 100:+.1f}%, SMA50 {dist50 * 100:+.1f}%")

        if sma20 > sma50:
            score += 0.2
            reasons.append("golden cross")
        elif sma20 < sma50:
            score -= 0.2
            reasons.append("death cross")

        macd_line = ema12 - ema26
        if macd_line > 0:
            score += 0.15
        elif macd_line < 0:
            score -= 0.15
        reasons.append(f"MACD {'+' if macd_line >= 0 else '-'}")

        if roc5 is not None:
            score += _graded(roc5, 0.02, 0.1)
        if roc20 is not None:
            score += _graded(roc20, 0.015, 0.15)
            reasons.append(f"ROC20 {roc20:+.1f}%")

        return StrategySignal(
            name=self.name,
            score=clamp(score),
            confidence=float(self.params["confidence"]),
            reason=", ".join(reasons),
        )
