"""
시그널 값 타입 정의.

[ 역할 ]
    전략 → 결합기 → 시뮬레이터로 흘러가는 불변 값 객체들을 정의.
    모든 모듈이 이 타입들만 주고받으므로, 전략 구현과 시뮬레이터가 서로를 모른다.

[ 주요 타입 ]
    SignalFamily    - 전략 패밀리 (DAILY: 일봉 4전략, REGIME: 레짐 적응형 4전략)
    Recommendation  - 결합 점수를 5단계 추천으로 변환한 결과
    Regime          - 시장 레짐 (analysis/regime.py가 판정)
    StrategySignal  - 개별 전략의 (점수, 신뢰도, 사유)
    SignalSnapshot  - 종목 × 시점 단위의 결합 결과
    TickData        - 시뮬레이터 1틱에 필요한 시그널/가격/ATR 묶음

[ 호출하는 곳 ]
    - strategies/*.py 가 StrategySignal 생성
    - analysis/combiner.py 가 SignalSnapshot 생성
    - backtest/signals.py 가 TickData 생성, backtest/phases.py 가 소비
"""

from dataclasses import dataclass, field
from enum import Enum

import pandas as pd


class SignalFamily(Enum):
    """전략 패밀리. 패밀리마다 결합 방식과 추천 임계값이 다르다."""
    DAILY = "daily"
    REGIME = "regime"


class Recommendation(Enum):
    """결합 점수 기반 5단계 추천."""
    STRONG_BUY = "STRONG_BUY"
    BUY = "BUY"
    HOLD = "HOLD"
    SELL = "SELL"
    STRONG_SELL = "STRONG_SELL"


class Regime(Enum):
    """시장 레짐."""
    TRENDING_UP = "TRENDING_UP"
    TRENDING_DOWN = "TRENDING_DOWN"
    RANGE_BOUND = "RANGE_BOUND"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class StrategySignal:
    """개별 전략 출력. score ∈ [-1, 1], confidence ∈ [0, 1]."""
    name: str
    score: float = 0.0
    confidence: float = 0.0
    reason: str = ""

    @classmethod
    def insufficient(cls, name: str) -> "StrategySignal":
        """룩백 부족 시 반환하는 중립 시그널."""
        return cls(name=name, score=0.0, confidence=0.0, reason="insufficient data")


@dataclass(frozen=True)
class SignalSnapshot:
    """종목 × 시점의 결합 시그널."""
    symbol: str
    timestamp: pd.Timestamp
    family: SignalFamily
    signals: dict[str, StrategySignal] = field(default_factory=dict)
    regime: Regime | None = None
    combined: float = 0.0
    recommendation: Recommendation = Recommendation.HOLD


@dataclass(frozen=True)
class TickData:
    """시뮬레이션 1틱 입력. 시그널 사전계산 단계에서 메모리에 모두 만들어 둔다."""
    timestamp: pd.Timestamp
    snapshots: dict[str, SignalSnapshot] = field(default_factory=dict)
    prices: dict[str, float] = field(default_factory=dict)      # 종목 → 현재가
    atr: dict[str, float] = field(default_factory=dict)         # 종목 → ATR (레짐 모드)
