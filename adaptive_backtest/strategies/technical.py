"""
기술적 지표 전략 (DAILY 패밀리).

[ 점수 구성 ]
    - RSI(14): <30 +0.5, <40 +0.25, >70 -0.5, >60 -0.25
    - 거래량 급증 (최근 5봉 평균 > 20봉 평균 × 1.5): 5봉 가격 방향대로 ±0.25
    [-1, 1] 클램프, 신뢰도 0.65 고정. 최소 20봉.
"""

from adaptive_backtest.analysis import indicators
from adaptive_backtest.core.signal_types import SignalFamily, StrategySignal
from adaptive_backtest.core.trading_strategy import MarketContext, SignalStrategy, clamp
from adaptive_backtest.strategies import register


@register("technical", SignalFamily.DAILY)
class TechnicalStrategy(SignalStrategy):
    """RSI 구간 + 거래량 급증 확인."""

    MIN_BARS = 20
    DEFAULT_PARAMS = {
        "rsi_period": 14,
        "volume_surge_ratio": 1.5,
        "confidence": 0.65,
    }

    def __init__(self, params=None):
        super().__init__(name="technical", family=SignalFamily.DAILY, params=params)

    def generate_signal(self, context: MarketContext) -> StrategySignal:
        closes = context.closes
        volumes = context.bars["volume"].tolist()
        value = indicators.rsi(closes, int(self.params["rsi_period"]))

        score = 0.0
        reasons = [f"RSI {value:.1f}"]
        if value < 30:
            score += 0.5
        elif value < 40:
            score += 0.25
        elif value > 70:
            score -= 0.5
        elif value > 60:
            score -= 0.25

        recent_volume = sum(volumes[-5:]) / 5
        avg_volume = sum(volumes[-20:]) / 20
        if recent_volume > avg_volume * float(self.params["volume_surge_ratio"]):
            first, last = closes[-5], closes[-1]
            change = (last - first) / first if first else 0.0
            if change > 0:
                score += 0.25
                reasons.append("volume surge up")
            else:
                score -= 0.25
                reasons.append("volume surge down")

        return StrategySignal(
            name=self.name,
            score=clamp(score),
            confidence=float(self.params["confidence"]),
            reason=", ".join(reasons),
        )
