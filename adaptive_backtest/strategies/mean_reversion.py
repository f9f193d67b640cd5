"""
평균회귀 전략 (DAILY 패밀리).

[ 점수 구성 ]
    장기 z-score (최근 min(200, n)봉)와 단기 z-score (최근 20봉)를 0.7 : 0.3으로 섞은 뒤
    bucket_zscore()로 9단계 점수화. 신뢰도 0.6 고정. 최소 50봉.

[ 공용 함수 ]
    bucket_zscore() - strategies/vwap_reversion.py도 같은 구간표를 사용
"""

from adaptive_backtest.analysis import indicators
from adaptive_backtest.core.signal_types import SignalFamily, StrategySignal
from adaptive_backtest.core.trading_strategy import MarketContext, SignalStrategy
from adaptive_backtest.strategies import register

# (하한 초과 조건, 점수, 라벨) - 위에서부터 먼저 맞는 구간 적용
_OVERSOLD_BUCKETS = (
    (-2.0, 0.8, "Extremely oversold"),
    (-1.5, 0.6, "Very oversold"),
    (-1.0, 0.4, "Oversold"),
    (-0.5, 0.2, "Slightly below mean"),
)
_OVERBOUGHT_BUCKETS = (
    (2.0, -0.8, "Extremely overbought"),
    (1.5, -0.6, "Very overbought"),
    (1.0, -0.4, "Overbought"),
    (0.5, -0.2, "Slightly above mean"),
)


def bucket_zscore(z: float) -> tuple[float, str]:
    """z-score → (점수, 라벨). 경계값은 한 단계 약한 구간에 속한다 (z=-2.0 → 0.6)."""
    for bound, score, label in _OVERSOLD_BUCKETS:
        if z < bound:
            return score, label
    for bound, score, label in _OVERBOUGHT_BUCKETS:
        if z > bound:
            return score, label
    return 0.0, "Near mean"


@register("mean_reversion", SignalFamily.DAILY)
class MeanReversionStrategy(SignalStrategy):
    """장단기 z-score 혼합 평균회귀."""

    MIN_BARS = 50
    DEFAULT_PARAMS = {
        "long_period": 200,
        "short_period": 20,
        "long_weight": 0.7,
        "confidence": 0.6,
    }

    def __init__(self, params=None):
        super().__init__(name="mean_reversion", family=SignalFamily.DAILY, params=params)

    def blended_zscore(self, closes: list[float]) -> float:
        price = closes[-1]
        long_window = closes[-min(int(self.params["long_period"]), len(closes)):]
        short_window = closes[-int(self.params["short_period"]):]

        long_z = indicators.zscore(
            price, sum(long_window) / len(long_window), indicators.population_std(long_window)
        )
        short_z = indicators.zscore(
            price, sum(short_window) / len(short_window), indicators.population_std(short_window)
        )
        weight = float(self.params["long_weight"])
        return long_z * weight + short_z * (1 - weight)

    def generate_signal(self, context: MarketContext) -> StrategySignal:
        z = self.blended_zscore(context.closes)
        score, label = bucket_zscore(z)
        return StrategySignal(
            name=self.name,
            score=score,
            confidence=float(self.params["confidence"]),
            reason=f"{label} (z={z:.2f})",
        )
