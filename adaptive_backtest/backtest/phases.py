"""
틱 처리 단계 모듈.

[ 역할 ]
    시뮬레이션 1틱을 순서가 고정된 단계들로 나눈다. 각 단계는
    (Portfolio, TickData, BacktestConfig) → 체결 목록 형태의 함수이며,
    엔진이 넘겨준 작업용 Portfolio 복사본에만 반영한다.

[ 실행 순서 (TICK_PHASES) ]
    1. mark_to_market  - 현재가 반영, 고점 갱신, 보유 봉 수 +1
    2. sell_phase      - 보유 종목별 매도 비율 결정 (우선순위 표 참고)
    3. rotation_phase  - 신규 매수 후보는 있는데 현금/슬롯이 없으면 약한 보유 종목 교체
    4. buy_phase       - 결합 점수 내림차순으로 신규 매수
    (5. 재평가는 engine.py가 Portfolio.revalue()로 수행)

[ 매도 우선순위 ]
    a. ATR 트레일링 스탑 (가격 ≤ 고점 - 배수 × 진입 ATR)     → 100%, 최소 보유 무시
    -- 이하 min_hold_bars 미만이면 건너뜀 --
    b. 시그널 없음                                            → 100%
    c. STRONG_SELL                                            → 100%
    d. DAILY 모드: 손절(%) 100% / 약한 시그널 100% / 익절(%) 50% / SELL 75%
    e. REGIME 모드: 진입가 대비 상승폭 ≥ 익절2 × ATR 50%, ≥ 익절1 × ATR 25%

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestEngine.step()
"""

import math
from typing import Callable

from adaptive_backtest.core.signal_types import (
    Recommendation,
    SignalFamily,
    SignalSnapshot,
    TickData,
)
from adaptive_backtest.data.portfolio import (
    MIN_SHARES,
    SHARE_DECIMALS,
    Holding,
    Portfolio,
    TradeRecord,
    round_shares,
)
from adaptive_backtest.utils.config import BacktestConfig

TickPhase = Callable[[Portfolio, TickData, BacktestConfig], list[TradeRecord]]


def affordable_shares(cash: float, price: float, fee_rate: float) -> float:
    """수수료 포함해 cash 안에서 살 수 있는 최대 수량 (소수 4자리 내림)."""
    if price <= 0 or cash <= 0:
        return 0.0
    scale = 10 ** SHARE_DECIMALS
    return math.floor(cash / (price * (1 + fee_rate)) * scale) / scale


# ─── 1. 시가평가 ────────────────────────────────────────────────────────────

def mark_to_market(portfolio: Portfolio, tick: TickData, config: BacktestConfig) -> list[TradeRecord]:
    """가격이 있는 종목만 평가 갱신. 보유 봉 수는 가격 유무와 무관하게 증가."""
    for holding in portfolio.holdings.values():
        price = tick.prices.get(holding.symbol)
        if price:
            holding.mark(price)
        holding.bars_held += 1
    return []


# ─── 2. 매도 ────────────────────────────────────────────────────────────────

def sell_decision(
    holding: Holding,
    snapshot: SignalSnapshot | None,
    price: float,
    atr_now: float | None,
    config: BacktestConfig,
) -> tuple[float, str]:
    """(매도 비율, 사유). 0이면 유지."""
    entry_atr = holding.entry_atr or atr_now
    high_water = holding.high_water_mark or holding.avg_cost

    if entry_atr and price <= high_water - config.atr_stop_multiplier * entry_atr:
        return 1.0, f"ATR trailing stop ({price:.2f} <= {high_water:.2f} - {config.atr_stop_multiplier}xATR)"

    if holding.bars_held < config.min_hold_bars:
        return 0.0, ""

    if snapshot is None:
        return 1.0, "No signal data"
    if snapshot.recommendation == Recommendation.STRONG_SELL:
        return 1.0, f"STRONG_SELL: {snapshot.combined:.2f}"

    if config.family == SignalFamily.DAILY:
        if holding.gain_loss_percent <= config.stop_loss:
            return 1.0, f"Stop loss at {holding.gain_loss_percent:.1f}%"
        if snapshot.combined < config.weak_signal_sell:
            return 1.0, f"Weak signal ({snapshot.combined:.3f})"
        if holding.gain_loss_percent >= config.profit_take:
            return 0.5, f"Taking profits at {holding.gain_loss_percent:.1f}%"
        if snapshot.recommendation == Recommendation.SELL:
            return 0.75, f"SELL: {snapshot.combined:.2f}"
        return 0.0, ""

    if entry_atr:
        gain = price - holding.avg_cost
        if gain >= config.atr_profit2_multiplier * entry_atr:
            return 0.5, f"ATR profit tier 2 (+{gain:.2f})"
        if gain >= config.atr_profit1_multiplier * entry_atr:
            return 0.25, f"ATR profit tier 1 (+{gain:.2f})"
    return 0.0, ""


def sell_phase(portfolio: Portfolio, tick: TickData, config: BacktestConfig) -> list[TradeRecord]:
    trades = []
    for holding in list(portfolio.holdings.values()):
        price = tick.prices.get(holding.symbol)
        if not price:
            continue
        holding.mark(price)

        percent, reason = sell_decision(
            holding,
            tick.snapshots.get(holding.symbol),
            price,
            tick.atr.get(holding.symbol),
            config,
        )
        if percent <= 0:
            continue

        shares = round_shares(holding.shares * percent) or holding.shares
        trades.append(portfolio.sell(
            tick.timestamp, holding.symbol, shares, price, config.fee_rate, reason,
        ))
    return trades


# ─── 3. 교체 ────────────────────────────────────────────────────────────────

def _unheld_candidates(portfolio: Portfolio, tick: TickData, threshold: float) -> list[SignalSnapshot]:
    return [
        s for s in tick.snapshots.values()
        if s.combined > threshold and not portfolio.has(s.symbol)
    ]


def rotation_phase(portfolio: Portfolio, tick: TickData, config: BacktestConfig) -> list[TradeRecord]:
    """현금 부족 또는 슬롯 가득 + 신규 후보 존재 시, 점수 낮은 보유 종목부터 최대 max_rotations개 청산."""
    if not _unheld_candidates(portfolio, tick, config.buy_threshold):
        return []
    available = portfolio.available_cash(config.target_cash_ratio)
    if available >= config.min_trade_value and portfolio.position_count < config.max_positions:
        return []

    eligible = [
        (h, tick.snapshots[h.symbol]) for h in portfolio.holdings.values()
        if h.symbol in tick.snapshots and h.bars_held >= config.min_hold_bars
    ]
    eligible.sort(key=lambda pair: pair[1].combined)

    trades = []
    for holding, snapshot in eligible:
        if len(trades) >= config.max_rotations:
            break
        if snapshot.combined >= config.buy_threshold:
            break
        price = tick.prices.get(holding.symbol)
        if not price:
            continue
        trades.append(portfolio.sell(
            tick.timestamp,
            holding.symbol,
            holding.shares,
            price,
            config.fee_rate,
            f"Rotation: weak signal ({snapshot.combined:.3f})",
        ))
    return trades


# ─── 4. 매수 ────────────────────────────────────────────────────────────────

def _buy_daily(portfolio: Portfolio, tick: TickData, config: BacktestConfig) -> list[TradeRecord]:
    """신호 강도 비례 사이징: min(가용현금 × |점수|, 총자산 × 종목 비중)."""
    candidates = sorted(
        (s for s in tick.snapshots.values() if s.combined > config.buy_threshold),
        key=lambda s: -s.combined,
    )[:config.max_buy_candidates]

    trades = []
    for snapshot in candidates:
        if portfolio.has(snapshot.symbol):
            continue
        if portfolio.position_count >= config.max_positions:
            break

        size = min(
            portfolio.available_cash(config.target_cash_ratio) * abs(snapshot.combined),
            portfolio.total_value * config.max_position_size,
        )
        if size < config.min_trade_value:
            continue
        price = tick.prices.get(snapshot.symbol)
        if not price:
            continue

        shares = round_shares(size / price)
        if shares * price * (1 + config.fee_rate) > portfolio.cash:
            shares = affordable_shares(portfolio.cash, price, config.fee_rate)
        if shares < MIN_SHARES:
            continue

        total = shares * price
        trades.append(portfolio.buy(
            tick.timestamp,
            snapshot.symbol,
            shares,
            price,
            fee=total * config.fee_rate,
            reason=f"{snapshot.recommendation.value}: {snapshot.combined:.2f}",
        ))
    return trades


def _buy_regime(portfolio: Portfolio, tick: TickData, config: BacktestConfig) -> list[TradeRecord]:
    """ATR 위험 기반 사이징: min(총자산 × 위험비율 / (손절배수 × ATR), 총자산 × 종목 비중 / 가격)."""
    open_slots = config.max_positions - portfolio.position_count
    if open_slots <= 0:
        return []
    candidates = sorted(
        _unheld_candidates(portfolio, tick, config.buy_threshold),
        key=lambda s: -s.combined,
    )[:min(open_slots, config.max_new_positions_per_cycle)]

    trades = []
    cash_avail = portfolio.available_cash(config.target_cash_ratio)
    for snapshot in candidates:
        if cash_avail < config.min_trade_value:
            break
        price = tick.prices.get(snapshot.symbol)
        if not price:
            continue

        atr = tick.atr.get(snapshot.symbol)
        max_shares = portfolio.total_value * config.max_position_size / price
        if atr and atr > 0:
            risk_amount = portfolio.total_value * config.risk_per_trade
            shares = min(risk_amount / (config.atr_stop_multiplier * atr), max_shares)
        else:
            shares = max_shares
        shares = round_shares(shares)
        if shares * price * (1 + config.fee_rate) > cash_avail:
            shares = affordable_shares(cash_avail, price, config.fee_rate)

        total = shares * price
        if shares < MIN_SHARES or total < config.min_trade_value:
            continue

        fee = total * config.fee_rate
        trades.append(portfolio.buy(
            tick.timestamp,
            snapshot.symbol,
            shares,
            price,
            fee=fee,
            reason=f"{snapshot.recommendation.value}: {snapshot.combined:.2f} ({snapshot.regime.value if snapshot.regime else '-'})",
            entry_atr=atr or None,
        ))
        cash_avail -= total + fee
    return trades


def buy_phase(portfolio: Portfolio, tick: TickData, config: BacktestConfig) -> list[TradeRecord]:
    if config.family == SignalFamily.DAILY:
        return _buy_daily(portfolio, tick, config)
    return _buy_regime(portfolio, tick, config)


TICK_PHASES: tuple[TickPhase, ...] = (
    mark_to_market,
    sell_phase,
    rotation_phase,
    buy_phase,
)
