"""
포트폴리오 관리 모듈.

[ 역할 ]
    현금, 보유 종목(Holding), 체결 기록(TradeRecord)을 관리하는 장부.
    매수/매도 규칙(언제, 얼마나)은 backtest/phases.py가 결정하고, 여기서는 장부 반영만 한다.

[ 주요 클래스 ]
    Holding     - 종목별 수량(소수 4자리)/평균단가/평가손익/고점/진입 ATR/보유 봉 수
    TradeRecord - 개별 체결 내역 (BUY / SELL, 수수료, 실현손익 포함)
    Portfolio   - 현금 + 보유 종목 + 직전 틱 총자산

[ 불변 조건 ]
    - 보유 수량은 항상 MIN_SHARES 이상 (0에 가까워지면 전량 청산으로 처리)
    - total_value는 틱 종료 시 revalue()로 cash + Σ market_value 로 재설정

[ 호출하는 곳 ]
    - backtest/phases.py 의 각 단계가 buy()/sell() 호출
    - backtest/engine.py 가 틱마다 copy() → 단계 적용 → revalue()
"""

from dataclasses import dataclass, replace
from typing import Any

import pandas as pd

MIN_SHARES = 0.0001
SHARE_DECIMALS = 4


def round_shares(shares: float) -> float:
    """소수 4자리 반올림."""
    return round(shares, SHARE_DECIMALS)


@dataclass
class Holding:
    """보유 종목. mark()로 현재가 기준 평가값 갱신."""
    symbol: str
    shares: float
    avg_cost: float
    current_price: float
    market_value: float = 0.0
    gain_loss: float = 0.0
    gain_loss_percent: float = 0.0
    high_water_mark: float = 0.0     # 보유 중 최고가 (ATR 트레일링 스탑 기준)
    entry_atr: float | None = None   # 진입 시점 ATR (레짐 모드)
    bars_held: int = 0               # 보유 틱 수

    def mark(self, price: float) -> None:
        """현재가 반영."""
        self.current_price = price
        self.market_value = self.shares * price
        self.gain_loss = (price - self.avg_cost) * self.shares
        self.gain_loss_percent = (price - self.avg_cost) / self.avg_cost * 100 if self.avg_cost > 0 else 0.0
        self.high_water_mark = max(self.high_water_mark or self.avg_cost, price)


@dataclass
class TradeRecord:
    """개별 체결 기록. metrics.py에서 승률/손익 계산에 사용됨."""
    timestamp: pd.Timestamp
    symbol: str
    action: str              # "BUY" or "SELL"
    shares: float
    price: float
    total: float             # shares × price (수수료 제외)
    fee: float = 0.0
    reason: str = ""
    gain_loss: float = 0.0           # 실현 손익 (매도 시에만, 수수료 제외)
    gain_loss_percent: float = 0.0   # 평균단가 대비 % (매도 시에만)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "symbol": self.symbol,
            "action": self.action,
            "shares": self.shares,
            "price": self.price,
            "total": self.total,
            "fee": self.fee,
            "reason": self.reason,
            "gain_loss": self.gain_loss,
            "gain_loss_percent": self.gain_loss_percent,
        }


class Portfolio:
    """포트폴리오 장부.

    BacktestEngine이 소유하며, 틱마다 작업용 복사본에 체결을 반영한 뒤 교체한다.
    holdings는 진입 순서를 유지한다 (매도 단계 순회 순서).
    """

    def __init__(self, initial_capital: float):
        self.initial_capital = initial_capital
        self.cash = initial_capital
        self.holdings: dict[str, Holding] = {}   # symbol → Holding
        self.total_value = initial_capital       # 직전 틱 종료 시점 총자산

    def copy(self) -> "Portfolio":
        clone = Portfolio(self.initial_capital)
        clone.cash = self.cash
        clone.total_value = self.total_value
        clone.holdings = {s: replace(h) for s, h in self.holdings.items()}
        return clone

    @property
    def holdings_value(self) -> float:
        return sum(h.market_value for h in self.holdings.values())

    @property
    def position_count(self) -> int:
        return len(self.holdings)

    def has(self, symbol: str) -> bool:
        return symbol in self.holdings

    def available_cash(self, target_cash_ratio: float) -> float:
        """현금 보유 목표를 뺀 가용 현금. 기준 총자산은 직전 틱 값."""
        return max(0.0, self.cash - self.total_value * target_cash_ratio)

    def buy(
        self,
        timestamp: pd.Timestamp,
        symbol: str,
        shares: float,
        price: float,
        fee: float = 0.0,
        reason: str = "",
        entry_atr: float | None = None,
    ) -> TradeRecord:
        """매수 반영. 이미 보유 중이면 평균단가로 합산."""
        total = shares * price
        self.cash -= total + fee

        holding = self.holdings.get(symbol)
        if holding is None:
            holding = Holding(
                symbol=symbol,
                shares=shares,
                avg_cost=price,
                current_price=price,
                high_water_mark=price,
                entry_atr=entry_atr,
            )
            self.holdings[symbol] = holding
        else:
            cost = holding.avg_cost * holding.shares + total
            holding.shares = round_shares(holding.shares + shares)
            holding.avg_cost = cost / holding.shares
        holding.mark(price)

        return TradeRecord(
            timestamp=timestamp,
            symbol=symbol,
            action="BUY",
            shares=shares,
            price=price,
            total=total,
            fee=fee,
            reason=reason,
        )

    def sell(
        self,
        timestamp: pd.Timestamp,
        symbol: str,
        shares: float,
        price: float,
        fee_rate: float = 0.0,
        reason: str = "",
    ) -> TradeRecord:
        """매도 반영. 남는 수량이 MIN_SHARES 미만이면 전량 매도.

        Raises:
            KeyError: 미보유 종목
        """
        holding = self.holdings[symbol]
        if shares <= 0 or holding.shares - shares < MIN_SHARES:
            shares = holding.shares

        holding.mark(price)
        total = shares * price
        fee = total * fee_rate
        self.cash += total - fee

        record = TradeRecord(
            timestamp=timestamp,
            symbol=symbol,
            action="SELL",
            shares=shares,
            price=price,
            total=total,
            fee=fee,
            reason=reason,
            gain_loss=(price - holding.avg_cost) * shares,
            gain_loss_percent=holding.gain_loss_percent,
        )

        if shares >= holding.shares:
            del self.holdings[symbol]
        else:
            holding.shares = round_shares(holding.shares - shares)
            holding.mark(price)
        return record

    def revalue(self) -> float:
        """총자산 재계산. 틱 종료 시 호출."""
        self.total_value = self.cash + self.holdings_value
        return self.total_value

    def get_summary(self) -> dict[str, Any]:
        """포트폴리오 요약."""
        return {
            "initial_capital": self.initial_capital,
            "cash": self.cash,
            "holdings_value": self.holdings_value,
            "total_value": self.total_value,
            "total_return": (self.total_value - self.initial_capital) / self.initial_capital * 100,
            "num_holdings": self.position_count,
            "holdings": {
                s: {
                    "shares": h.shares,
                    "avg_cost": h.avg_cost,
                    "current_price": h.current_price,
                    "market_value": h.market_value,
                    "gain_loss_percent": h.gain_loss_percent,
                }
                for s, h in self.holdings.items()
            },
        }
