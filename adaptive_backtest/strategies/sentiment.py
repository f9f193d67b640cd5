"""
감성 대체 전략 (DAILY 패밀리).

[ 역할 ]
    외부 감성 데이터 없이 백테스트를 재현 가능하게 만들기 위한 결정적 대체값.
    (종목 + 날짜) 문자열의 32비트 해시를 [-0.2, 0.2) 범위 점수로 사상한다.
    가격과 무관하며, 같은 입력이면 언제나 같은 점수. 신뢰도 0.3.
    다른 DAILY 전략과 같이 최소 봉 수 미만 구간에서는 시그널을 내지 않는다.
"""

from adaptive_backtest.core.signal_types import SignalFamily, StrategySignal
from adaptive_backtest.core.trading_strategy import MarketContext, SignalStrategy
from adaptive_backtest.strategies import register


def seed_hash(text: str) -> int:
    """h = h*31 + code 를 부호 있는 32비트로 누적하는 문자열 해시."""
    h = 0
    for ch in text:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return h


def sentiment_score(symbol: str, day: str) -> float:
    """(종목, 'YYYY-MM-DD') → [-0.2, 0.2) 점수."""
    h = seed_hash(symbol + day)
    return (abs(h) % 1000) / 1000 * 0.4 - 0.2


@register("sentiment", SignalFamily.DAILY)
class SentimentStrategy(SignalStrategy):
    """결정적 감성 대체값."""

    MIN_BARS = 20
    DEFAULT_PARAMS = {
        "confidence": 0.3,
    }

    def __init__(self, params=None):
        super().__init__(name="sentiment", family=SignalFamily.DAILY, params=params)

    def generate_signal(self, context: MarketContext) -> StrategySignal:
        day = context.timestamp.strftime("%Y-%m-%d")
        score = sentiment_score(context.symbol, day)
        return StrategySignal(
            name=self.name,
            score=score,
            confidence=float(self.params["confidence"]),
            reason=f"seeded {context.symbol}@{day}",
        )
