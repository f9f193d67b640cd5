"""
볼린저 밴드 + RSI 평균회귀 전략 (REGIME 패밀리, 평균회귀 그룹).

[ 입력 ]
    최근 분봉 종가. 최소 25봉.

[ 점수 구성 ]
    - 밴드폭 < 1%: 판단 생략 (점수 0, 신뢰도 0.3)
    - 하단 이탈 +0.5, RSI <30 +0.3 / <40 +0.15 추가 (상단 이탈은 대칭)
    - 밴드 내부: 위치 <0.2 +0.2, >0.8 -0.2
    [-1, 1] 클램프, 신뢰도 0.7.
"""

from adaptive_backtest.analysis import indicators
from adaptive_backtest.core.signal_types import SignalFamily, StrategySignal
from adaptive_backtest.core.trading_strategy import MarketContext, SignalStrategy, clamp
from adaptive_backtest.strategies import register


@register("bb_rsi_reversion", SignalFamily.REGIME)
class BollingerRSIReversionStrategy(SignalStrategy):
    """밴드 이탈 + RSI 확인."""

    MIN_BARS = 25
    DEFAULT_PARAMS = {
        "bb_period": 20,
        "bb_mult": 2.0,
        "rsi_period": 14,
        "min_bandwidth": indicators.MIN_BANDWIDTH,
        "confidence": 0.7,
        "narrow_confidence": 0.3,
    }

    def __init__(self, params=None):
        super().__init__(name="bb_rsi_reversion", family=SignalFamily.REGIME, params=params)

    def generate_signal(self, context: MarketContext) -> StrategySignal:
        closes = context.closes
        bands = indicators.bollinger_bands(
            closes, int(self.params["bb_period"]), float(self.params["bb_mult"])
        )
        if bands is None:
            return StrategySignal(name=self.name, score=0.0, confidence=0.0, reason="cannot compute")
        if bands.bandwidth < float(self.params["min_bandwidth"]):
            return StrategySignal(
                name=self.name,
                score=0.0,
                confidence=float(self.params["narrow_confidence"]),
                reason="BB too narrow",
            )

        value = indicators.rsi(closes, int(self.params["rsi_period"]))
        price = closes[-1]
        score = 0.0
        if price < bands.lower:
            score += 0.5
            if value < 30:
                score += 0.3
            elif value < 40:
                score += 0.15
            reason = f"below lower band, RSI {value:.1f}"
        elif price > bands.upper:
            score -= 0.5
            if value > 70:
                score -= 0.3
            elif value > 60:
                score -= 0.15
            reason = f"above upper band, RSI {value:.1f}"
        else:
            position = bands.position(price)
            if position < 0.2:
                score += 0.2
            elif position > 0.8:
                score -= 0.2
            reason = f"band position {position:.2f}"

        return StrategySignal(
            name=self.name,
            score=clamp(score),
            confidence=float(self.params["confidence"]),
            reason=reason,
        )
