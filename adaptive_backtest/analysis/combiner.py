"""
시그널 결합 모듈.

[ 역할 ]
    전략별 StrategySignal들을 하나의 결합 점수와 5단계 추천으로 합친다.

[ 결합 방식 ]
    DAILY  (고정 가중치)   combined = Σ score × weight
    REGIME (레짐 가중치)   그룹별 신뢰도 가중 평균 → 레짐 표의 (추세, 평균회귀) 비중으로 합산
                           신뢰도 0인 시그널은 평균에서 제외

[ 추천 임계값 ]
    DAILY  : > 0.5 STRONG_BUY, > 0.15 BUY, < -0.5 STRONG_SELL, < -0.15 SELL
    REGIME : > 0.55 STRONG_BUY, > 0.35 BUY, < -0.55 STRONG_SELL, < -0.35 SELL

[ 호출하는 곳 ]
    - backtest/signals.py (사전계산 시 SignalSnapshot 생성)
    - optimization/walk_forward.py (후보 가중치로 recombine)
"""

from dataclasses import replace
from typing import Mapping

import pandas as pd

from adaptive_backtest.core.signal_types import (
    Recommendation,
    Regime,
    SignalFamily,
    SignalSnapshot,
    StrategySignal,
)
from adaptive_backtest.utils.config import validate_weights

DEFAULT_DAILY_WEIGHTS: dict[str, float] = {
    "momentum": 0.30,
    "mean_reversion": 0.25,
    "sentiment": 0.15,
    "technical": 0.30,
}

TREND_GROUP = ("trend_momentum", "macd_trend")
REVERSION_GROUP = ("bb_rsi_reversion", "vwap_reversion")

DEFAULT_REGIME_WEIGHTS: dict[Regime, dict[str, float]] = {
    Regime.TRENDING_UP: {"trend": 0.80, "reversion": 0.20},
    Regime.TRENDING_DOWN: {"trend": 0.80, "reversion": 0.20},
    Regime.RANGE_BOUND: {"trend": 0.20, "reversion": 0.80},
    Regime.UNKNOWN: {"trend": 0.50, "reversion": 0.50},
}

# (강한 임계값, 약한 임계값)
THRESHOLDS: dict[SignalFamily, tuple[float, float]] = {
    SignalFamily.DAILY: (0.5, 0.15),
    SignalFamily.REGIME: (0.55, 0.35),
}


def recommend(score: float, family: SignalFamily) -> Recommendation:
    """결합 점수 → 추천. 경계값 자체는 한 단계 약한 쪽 (0.15 → HOLD)."""
    strong, weak = THRESHOLDS[family]
    if score > strong:
        return Recommendation.STRONG_BUY
    if score > weak:
        return Recommendation.BUY
    if score < -strong:
        return Recommendation.STRONG_SELL
    if score < -weak:
        return Recommendation.SELL
    return Recommendation.HOLD


def combine_fixed(signals: Mapping[str, StrategySignal], weights: Mapping[str, float]) -> float:
    """Σ score × weight. 시그널이 없는 전략은 0점 취급."""
    total = 0.0
    for name, weight in weights.items():
        signal = signals.get(name)
        if signal is not None:
            total += signal.score * weight
    return total


def confidence_weighted_average(signals: list[StrategySignal]) -> float:
    """신뢰도 가중 평균. 신뢰도 0은 제외, 전부 0이면 0."""
    total_weight = 0.0
    total_score = 0.0
    for s in signals:
        if s.confidence > 0:
            total_score += s.score * s.confidence
            total_weight += s.confidence
    return total_score / total_weight if total_weight > 0 else 0.0


def combine_regime(
    signals: Mapping[str, StrategySignal],
    regime: Regime,
    regime_weights: Mapping[Regime, Mapping[str, float]] | None = None,
) -> float:
    """그룹 평균을 레짐 비중으로 합산."""
    table = regime_weights or DEFAULT_REGIME_WEIGHTS
    weights = table.get(regime) or table[Regime.UNKNOWN]
    trend = confidence_weighted_average([signals[n] for n in TREND_GROUP if n in signals])
    reversion = confidence_weighted_average([signals[n] for n in REVERSION_GROUP if n in signals])
    return trend * weights["trend"] + reversion * weights["reversion"]


class SignalCombiner:
    """패밀리별 결합 규칙을 묶은 객체. 상태가 없으므로 같은 입력이면 같은 출력."""

    def __init__(
        self,
        family: SignalFamily,
        weights: Mapping[str, float] | None = None,
        regime_weights: Mapping[Regime, Mapping[str, float]] | None = None,
    ):
        self.family = family
        self.weights = dict(weights or DEFAULT_DAILY_WEIGHTS)
        self.regime_weights = dict(regime_weights or DEFAULT_REGIME_WEIGHTS)
        if family == SignalFamily.DAILY:
            validate_weights(self.weights)

    def score(self, signals: Mapping[str, StrategySignal], regime: Regime | None = None) -> float:
        if self.family == SignalFamily.DAILY:
            return combine_fixed(signals, self.weights)
        return combine_regime(signals, regime or Regime.UNKNOWN, self.regime_weights)

    def combine(
        self,
        symbol: str,
        timestamp: pd.Timestamp,
        signals: Mapping[str, StrategySignal],
        regime: Regime | None = None,
    ) -> SignalSnapshot:
        combined = self.score(signals, regime)
        return SignalSnapshot(
            symbol=symbol,
            timestamp=timestamp,
            family=self.family,
            signals=dict(signals),
            regime=regime,
            combined=combined,
            recommendation=recommend(combined, self.family),
        )

    def recombine(self, snapshot: SignalSnapshot) -> SignalSnapshot:
        """저장된 전략 시그널은 그대로 두고 결합 점수만 다시 계산."""
        combined = self.score(snapshot.signals, snapshot.regime)
        return replace(
            snapshot,
            combined=combined,
            recommendation=recommend(combined, self.family),
        )
