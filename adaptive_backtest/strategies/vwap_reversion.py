"""
VWAP 평균회귀 전략 (REGIME 패밀리, 평균회귀 그룹).

[ 입력 ]
    당일 세션 분봉 (MarketContext.session_bars). 최소 6봉.

[ 점수 구성 ]
    세션 VWAP 대비 z-score를 mean_reversion.bucket_zscore()로 점수화.
    신뢰도는 세션 진행도에 비례: min(0.8, 0.3 + n/78 × 0.5)
    거래량 없음 → 신뢰도 0, 변동 없음 → 점수 0 / 신뢰도 0.3.
"""

from adaptive_backtest.analysis import indicators
from adaptive_backtest.core.signal_types import SignalFamily, StrategySignal
from adaptive_backtest.core.trading_strategy import MarketContext, SignalStrategy
from adaptive_backtest.strategies import register
from adaptive_backtest.strategies.mean_reversion import bucket_zscore


@register("vwap_reversion", SignalFamily.REGIME)
class VWAPReversionStrategy(SignalStrategy):
    """세션 VWAP 괴리 평균회귀."""

    MIN_BARS = 6
    DEFAULT_PARAMS = {
        "session_length": 78,   # 5분봉 기준 정규장 봉 수
        "base_confidence": 0.3,
        "max_confidence": 0.8,
        "flat_confidence": 0.3,
    }

    def __init__(self, params=None):
        super().__init__(name="vwap_reversion", family=SignalFamily.REGIME, params=params)

    def input_length(self, context: MarketContext) -> int:
        if context.session_bars is None:
            return 0
        return len(context.session_bars)

    def generate_signal(self, context: MarketContext) -> StrategySignal:
        bars = context.session_bars
        result = indicators.vwap_zscore(
            bars["high"].tolist(),
            bars["low"].tolist(),
            bars["close"].tolist(),
            bars["volume"].tolist(),
        )
        if result.volume == 0:
            return StrategySignal(name=self.name, score=0.0, confidence=0.0, reason="no volume")
        if result.std == 0:
            return StrategySignal(
                name=self.name,
                score=0.0,
                confidence=float(self.params["flat_confidence"]),
                reason="no variation",
            )

        score, label = bucket_zscore(result.zscore)
        progress = len(bars) / float(self.params["session_length"])
        confidence = min(
            float(self.params["max_confidence"]),
            float(self.params["base_confidence"]) + progress * 0.5,
        )
        return StrategySignal(
            name=self.name,
            score=score,
            confidence=confidence,
            reason=f"{label} (z={result.zscore:.2f} vs VWAP {result.vwap:.2f})",
        )
