"""
MACD 추세 전략 (REGIME 패밀리, 추세 그룹).

[ 입력 ]
    최근 분봉 종가. 최소 40봉.

[ 점수 구성 ]
    - 히스토그램 부호 ±0.3
    - 히스토그램 기울기: 같은 방향 가속 ±0.25, 반대 방향 회복 ±0.15
    - MACD 선 vs 시그널 선 ±0.2
    [-1, 1] 클램프, 신뢰도 0.6.
"""

from adaptive_backtest.analysis import indicators
from adaptive_backtest.core.signal_types import SignalFamily, StrategySignal
from adaptive_backtest.core.trading_strategy import MarketContext, SignalStrategy, clamp
from adaptive_backtest.strategies import register


@register("macd_trend", SignalFamily.REGIME)
class MACDTrendStrategy(SignalStrategy):
    """MACD 히스토그램과 그 기울기."""

    MIN_BARS = 40
    DEFAULT_PARAMS = {
        "fast": 12,
        "slow": 26,
        "signal": 9,
        "confidence": 0.6,
    }

    def __init__(self, params=None):
        super().__init__(name="macd_trend", family=SignalFamily.REGIME, params=params)

    def generate_signal(self, context: MarketContext) -> StrategySignal:
        result = indicators.macd(
            context.closes,
            int(self.params["fast"]),
            int(self.params["slow"]),
            int(self.params["signal"]),
        )
        if result is None:
            return StrategySignal(name=self.name, score=0.0, confidence=0.0, reason="cannot compute")

        hist = result.histogram
        score = 0.3 if hist > 0 else -0.3

        if result.prev_histogram is not None:
            slope = hist - result.prev_histogram
            if slope > 0 and hist > 0:
                score += 0.25
            elif slope < 0 and hist < 0:
                score -= 0.25
            elif slope > 0 and hist < 0:
                score += 0.15
            elif slope < 0 and hist > 0:
                score -= 0.15

        score += 0.2 if result.macd > result.signal else -0.2

        return StrategySignal(
            name=self.name,
            score=clamp(score),
            confidence=float(self.params["confidence"]),
            reason=f"hist {hist:+.4f}",
        )
