"""
시그널 전략 추상 클래스 정의.

[ 역할 ]
    전략 하나 = "가격 이력 → StrategySignal(점수, 신뢰도, 사유)" 순수 함수.
    주문 수량이나 포지션은 전략이 모른다. 매매 판단은 결합기와 시뮬레이터의 몫.

[ 구현체 ]
    DAILY 패밀리   - strategies/momentum.py, mean_reversion.py, technical.py, sentiment.py
    REGIME 패밀리  - strategies/trend_momentum.py, macd_trend.py,
                     bb_rsi_reversion.py, vwap_reversion.py

[ 호출하는 곳 ]
    - backtest/signals.py::SignalPrecomputer가 종목 × 틱마다 evaluate() 호출

[ 데이터 흐름 ]
    MarketContext(봉 이력) → evaluate() → 최소 봉 수 확인 → generate_signal() → StrategySignal
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import pandas as pd

from adaptive_backtest.core.signal_types import SignalFamily, StrategySignal


@dataclass(frozen=True)
class MarketContext:
    """전략 입력. 시점 이후 데이터는 절대 포함하지 않는다.

    bars:         주 시계열 (DAILY 모드는 일봉, REGIME 모드는 최근 분봉)
    daily_bars:   일봉 이력 (REGIME 모드에서 추세/레짐 판단용)
    session_bars: 당일 세션 분봉 (VWAP용)
    """
    symbol: str
    timestamp: pd.Timestamp
    bars: pd.DataFrame
    daily_bars: pd.DataFrame | None = None
    session_bars: pd.DataFrame | None = None

    @property
    def closes(self) -> list[float]:
        return self.bars["close"].tolist()


def clamp(value: float, low: float = -1.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


class SignalStrategy(ABC):
    """시그널 전략 추상 클래스.

    새 전략은 이 클래스를 상속받아 generate_signal()만 구현하면 된다.
    input_length()는 기본으로 주 시계열 길이를 돌려주며, 다른 입력 길이가 필요할 때만 재정의한다.
    MIN_BARS 미만 입력은 evaluate()가 걸러서 "insufficient data" 시그널을 돌려준다.
    """

    MIN_BARS: int = 0
    DEFAULT_PARAMS: dict[str, Any] = {}

    def __init__(self, name: str, family: SignalFamily, params: dict[str, Any] | None = None):
        self.name = name
        self.family = family
        self.params = {**self.DEFAULT_PARAMS, **(params or {})}

    @property
    def min_bars(self) -> int:
        return int(self.params.get("min_bars", self.MIN_BARS))

    def input_length(self, context: MarketContext) -> int:
        """최소 봉 수 판단에 쓰이는 입력 길이. 기본은 주 시계열 길이."""
        return len(context.bars)

    def evaluate(self, context: MarketContext) -> StrategySignal:
        """전 구간 정의된(total) 진입점. 데이터가 부족하면 중립 시그널."""
        if self.input_length(context) < self.min_bars:
            return StrategySignal.insufficient(self.name)
        return self.generate_signal(context)

    @abstractmethod
    def generate_signal(self, context: MarketContext) -> StrategySignal:
        """점수/신뢰도/사유 계산. 점수는 [-1, 1]로 클램프해서 반환."""
        ...
