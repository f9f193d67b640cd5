"""
추세 모멘텀 전략 (REGIME 패밀리, 추세 그룹).

[ 입력 ]
    일봉 종가 (MarketContext.daily_bars). 최소 50봉.

[ 점수 구성 ]
    - SMA10 > SMA20 > SMA50 정배열 +0.4 / 역배열 -0.4 / 단기만 위·아래 ±0.15
    - 20일 ROC: >10% +0.3, >3% +0.15, <-10% -0.3, <-3% -0.15
    - 50일 고가권(≥ 최고가×0.98) +0.2 / 저가권(≤ 최저가×1.02) -0.2
    - SMA20 기울기 (5봉 전 SMA20 대비) ±0.1
    [-1, 1] 클램프, 신뢰도 0.7.
"""

from adaptive_backtest.analysis import indicators
from adaptive_backtest.core.signal_types import SignalFamily, StrategySignal
from adaptive_backtest.core.trading_strategy import MarketContext, SignalStrategy, clamp
from adaptive_backtest.strategies import register


@register("trend_momentum", SignalFamily.REGIME)
class TrendMomentumStrategy(SignalStrategy):
    """일봉 추세 정렬 + 브레이크아웃 근접도."""

    MIN_BARS = 50
    DEFAULT_PARAMS = {
        "confidence": 0.7,
    }

    def __init__(self, params=None):
        super().__init__(name="trend_momentum", family=SignalFamily.REGIME, params=params)

    def input_length(self, context: MarketContext) -> int:
        if context.daily_bars is None:
            return 0
        return len(context.daily_bars)

    def generate_signal(self, context: MarketContext) -> StrategySignal:
        closes = context.daily_bars["close"].tolist()
        price = closes[-1]
        sma10 = indicators.sma(closes, 10)
        sma20 = indicators.sma(closes, 20)
        sma50 = indicators.sma(closes, 50)

        score = 0.0
        reasons = []
        if sma10 > sma20 > sma50:
            score += 0.4
            reasons.append("MA stack up")
        elif sma10 < sma20 < sma50:
            score -= 0.4
            reasons.append("MA stack down")
        elif sma10 > sma20:
            score += 0.15
        elif sma10 < sma20:
            score -= 0.15

        roc20 = indicators.rate_of_change(closes, 20)
        if roc20 is not None:
            if roc20 > 10:
                score += 0.3
            elif roc20 > 3:
                score += 0.15
            elif roc20 < -10:
                score -= 0.3
            elif roc20 < -3:
                score -= 0.15
            reasons.append(f"ROC20 {roc20:+.1f}%")

        window = closes[-50:]
        if price >= max(window) * 0.98:
            score += 0.2
            reasons.append("near 50d high")
        elif price <= min(window) * 1.02:
            score -= 0.2
            reasons.append("near 50d low")

        if len(closes) >= 25:
            sma20_prev = indicators.sma(closes[:-5], 20)
            if sma20_prev is not None and sma20 > sma20_prev:
                score += 0.1
            elif sma20_prev is not None and sma20 < sma20_prev:
                score -= 0.1

        return StrategySignal(
            name=self.name,
            score=clamp(score),
            confidence=float(self.params["confidence"]),
            reason=", ".join(reasons),
        )
