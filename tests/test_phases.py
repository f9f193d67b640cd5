import pandas as pd
import pytest

from adaptive_backtest.backtest.phases import (
    affordable_shares,
    buy_phase,
    mark_to_market,
    rotation_phase,
    sell_decision,
    sell_phase,
)
from adaptive_backtest.core.signal_types import Recommendation, Regime, SignalFamily
from adaptive_backtest.data.portfolio import Portfolio
from adaptive_backtest.utils.config import BacktestConfig

TS = pd.Timestamp("2024-03-01")


def holding_at(price, avg_cost=100.0, shares=10.0, entry_atr=None, bars_held=0):
    portfolio = Portfolio(10_000)
    portfolio.buy(TS, "AAA", shares, avg_cost, entry_atr=entry_atr)
    holding = portfolio.holdings["AAA"]
    holding.mark(price)
    holding.bars_held = bars_held
    return portfolio, holding


class TestSellDecision:
    def test_stop_loss_ignores_signal(self, make_snapshot):
        config = BacktestConfig.daily(stop_loss=-2.0)
        _, holding = holding_at(97.5)
        assert holding.gain_loss_percent == pytest.approx(-2.5)
        strong_buy = make_snapshot("AAA", 0.9)
        percent, reason = sell_decision(holding, strong_buy, 97.5, None, config)
        assert percent == 1.0
        assert reason.startswith("Stop loss")

    def test_weak_signal_sells_all(self, make_snapshot):
        config = BacktestConfig.daily()
        _, holding = holding_at(100.5)
        percent, _ = sell_decision(holding, make_snapshot("AAA", 0.01), 100.5, None, config)
        assert percent == 1.0

    def test_profit_take_sells_half(self, make_snapshot):
        config = BacktestConfig.daily()
        _, holding = holding_at(103.0)
        percent, _ = sell_decision(holding, make_snapshot("AAA", 0.3), 103.0, None, config)
        assert percent == 0.5

    def test_sell_recommendation(self, make_snapshot):
        config = BacktestConfig.daily(weak_signal_sell=-1.0)
        _, holding = holding_at(100.5)
        snap = make_snapshot("AAA", -0.3)
        assert snap.recommendation == Recommendation.SELL
        percent, _ = sell_decision(holding, snap, 100.5, None, config)
        assert percent == 0.75

    def test_hold_keeps_position(self, make_snapshot):
        config = BacktestConfig.daily()
        _, holding = holding_at(100.5)
        assert sell_decision(holding, make_snapshot("AAA", 0.1), 100.5, None, config)[0] == 0.0

    def test_strong_sell(self, make_snapshot):
        config = BacktestConfig.regime()
        _, holding = holding_at(100.0, bars_held=30)
        snap = make_snapshot("AAA", -0.8, family=SignalFamily.REGIME)
        assert sell_decision(holding, snap, 100.0, None, config)[0] == 1.0

    def test_missing_signal_sells_all(self):
        config = BacktestConfig.daily()
        _, holding = holding_at(100.0)
        percent, reason = sell_decision(holding, None, 100.0, None, config)
        assert percent == 1.0
        assert reason == "No signal data"

    def test_atr_trailing_stop_overrides_min_hold(self, make_snapshot):
        config = BacktestConfig.regime()
        _, holding = holding_at(110.0, entry_atr=1.0, bars_held=1)
        holding.mark(107.9)
        assert holding.high_water_mark == 110.0
        snap = make_snapshot("AAA", 0.6, family=SignalFamily.REGIME)
        percent, reason = sell_decision(holding, snap, 107.9, None, config)
        assert percent == 1.0
        assert "ATR trailing stop" in reason

    def test_min_hold_blocks_signal_exit(self, make_snapshot):
        config = BacktestConfig.regime(min_hold_bars=24)
        _, holding = holding_at(100.0, entry_atr=1.0, bars_held=5)
        snap = make_snapshot("AAA", -0.9, family=SignalFamily.REGIME)
        assert sell_decision(holding, snap, 100.0, None, config)[0] == 0.0

    @pytest.mark.parametrize("price, expected", [(105.0, 0.5), (103.0, 0.25), (101.0, 0.0)])
    def test_atr_profit_tiers(self, make_snapshot, price, expected):
        config = BacktestConfig.regime()
        _, holding = holding_at(price, entry_atr=1.0, bars_held=30)
        snap = make_snapshot("AAA", 0.4, family=SignalFamily.REGIME)
        assert sell_decision(holding, snap, price, None, config)[0] == expected

    def test_current_atr_fallback(self, make_snapshot):
        config = BacktestConfig.regime()
        _, holding = holding_at(110.0, bars_held=30)
        holding.mark(107.0)
        snap = make_snapshot("AAA", 0.4, family=SignalFamily.REGIME)
        assert sell_decision(holding, snap, 107.0, 1.0, config)[0] == 1.0
        assert sell_decision(holding, snap, 107.0, None, config)[0] == 0.0


class TestSellPhase:
    def test_skips_symbol_without_price(self, make_tick):
        config = BacktestConfig.daily()
        portfolio, _ = holding_at(90.0)
        trades = sell_phase(portfolio, make_tick([], {}), config)
        assert trades == []
        assert "AAA" in portfolio.holdings

    def test_partial_sell_rounds_shares(self, make_snapshot, make_tick):
        config = BacktestConfig.daily()
        portfolio, _ = holding_at(100.0, shares=3.0)
        tick = make_tick([make_snapshot("AAA", 0.3)], {"AAA": 103.0})
        trades = sell_phase(portfolio, tick, config)
        assert len(trades) == 1
        assert trades[0].shares == 1.5
        assert portfolio.holdings["AAA"].shares == 1.5


class TestMarkToMarket:
    def test_marks_and_counts_bars(self, make_tick):
        portfolio = Portfolio(10_000)
        portfolio.buy(TS, "AAA", 1, 100.0)
        portfolio.buy(TS, "BBB", 1, 50.0)
        mark_to_market(portfolio, make_tick([], {"AAA": 120.0}), BacktestConfig.daily())
        assert portfolio.holdings["AAA"].current_price == 120.0
        assert portfolio.holdings["BBB"].current_price == 50.0
        assert portfolio.holdings["AAA"].bars_held == 1
        assert portfolio.holdings["BBB"].bars_held == 1


class TestRotation:
    def test_rotates_weakest_when_slots_full(self, make_snapshot, make_tick):
        config = BacktestConfig.daily(max_positions=2)
        portfolio = Portfolio(10_000)
        portfolio.buy(TS, "AAA", 1, 100.0)
        portfolio.buy(TS, "BBB", 1, 100.0)
        tick = make_tick(
            [make_snapshot("AAA", 0.01), make_snapshot("BBB", -0.05), make_snapshot("CCC", 0.5)],
            {"AAA": 100.0, "BBB": 100.0, "CCC": 50.0},
        )
        trades = rotation_phase(portfolio, tick, config)
        assert [t.symbol for t in trades] == ["BBB", "AAA"]
        assert portfolio.position_count == 0

    def test_no_rotation_when_room(self, make_snapshot, make_tick):
        config = BacktestConfig.daily(max_positions=5)
        portfolio = Portfolio(10_000)
        portfolio.buy(TS, "AAA", 1, 100.0)
        tick = make_tick([make_snapshot("AAA", 0.0), make_snapshot("CCC", 0.5)], {"AAA": 100.0, "CCC": 50.0})
        assert rotation_phase(portfolio, tick, config) == []

    def test_strong_holdings_kept(self, make_snapshot, make_tick):
        config = BacktestConfig.daily(max_positions=1)
        portfolio = Portfolio(10_000)
        portfolio.buy(TS, "AAA", 1, 100.0)
        tick = make_tick([make_snapshot("AAA", 0.3), make_snapshot("CCC", 0.5)], {"AAA": 100.0, "CCC": 50.0})
        assert rotation_phase(portfolio, tick, config) == []

    def test_respects_max_rotations(self, make_snapshot, make_tick):
        config = BacktestConfig.daily(max_positions=4, max_rotations=1)
        portfolio = Portfolio(10_000)
        for s in ("AAA", "BBB", "CCC", "DDD"):
            portfolio.buy(TS, s, 1, 10.0)
        snaps = [make_snapshot(s, -0.1) for s in ("AAA", "BBB", "CCC", "DDD")] + [make_snapshot("EEE", 0.5)]
        prices = {s.symbol: 10.0 for s in snaps}
        assert len(rotation_phase(portfolio, make_tick(snaps, prices), config)) == 1


class TestBuyDaily:
    def test_signal_proportional_sizing(self, make_snapshot, make_tick):
        config = BacktestConfig.daily(max_position_size=0.1, transaction_cost_bps=5)
        portfolio = Portfolio(10_000)
        trades = buy_phase(portfolio, make_tick([make_snapshot("AAA", 0.6)], {"AAA": 100.0}), config)

        assert len(trades) == 1
        assert trades[0].shares == pytest.approx(10.0)
        assert trades[0].fee == pytest.approx(0.5)
        assert portfolio.cash == pytest.approx(9_000 - 0.5)

    def test_strongest_first_and_max_positions(self, make_snapshot, make_tick):
        config = BacktestConfig.daily(max_positions=2)
        portfolio = Portfolio(10_000)
        snaps = [make_snapshot("AAA", 0.2), make_snapshot("BBB", 0.6), make_snapshot("CCC", 0.4)]
        trades = buy_phase(portfolio, make_tick(snaps, {"AAA": 10.0, "BBB": 10.0, "CCC": 10.0}), config)
        assert [t.symbol for t in trades] == ["BBB", "CCC"]

    def test_skips_held_and_missing_price(self, make_snapshot, make_tick):
        config = BacktestConfig.daily()
        portfolio = Portfolio(10_000)
        portfolio.buy(TS, "AAA", 1, 10.0)
        snaps = [make_snapshot("AAA", 0.6), make_snapshot("BBB", 0.5)]
        assert buy_phase(portfolio, make_tick(snaps, {"AAA": 10.0}), config) == []

    def test_below_min_trade_value(self, make_snapshot, make_tick):
        config = BacktestConfig.daily(min_trade_value=15)
        portfolio = Portfolio(10_000)
        portfolio.cash = 100
        assert buy_phase(portfolio, make_tick([make_snapshot("AAA", 0.1)], {"AAA": 10.0}), config) == []


class TestBuyRegime:
    def snap(self, make_snapshot, symbol, combined):
        return make_snapshot(symbol, combined, family=SignalFamily.REGIME, regime=Regime.TRENDING_UP)

    def test_atr_risk_sizing(self, make_snapshot, make_tick):
        config = BacktestConfig.regime()
        portfolio = Portfolio(10_000)
        tick = make_tick([self.snap(make_snapshot, "AAA", 0.6)], {"AAA": 100.0}, atr={"AAA": 10.0})
        trades = buy_phase(portfolio, tick, config)
        # 10000 × 0.01 / (2 × 10) = 5주 < 10000 × 0.07 / 100 = 7주
        assert trades[0].shares == pytest.approx(5.0)
        assert portfolio.holdings["AAA"].entry_atr == 10.0
        assert "TRENDING_UP" in trades[0].reason

    def test_position_cap_when_atr_small(self, make_snapshot, make_tick):
        config = BacktestConfig.regime()
        portfolio = Portfolio(10_000)
        tick = make_tick([self.snap(make_snapshot, "AAA", 0.6)], {"AAA": 100.0}, atr={"AAA": 0.5})
        assert buy_phase(portfolio, tick, config)[0].shares == pytest.approx(7.0)

    def test_no_atr_uses_position_cap(self, make_snapshot, make_tick):
        config = BacktestConfig.regime()
        portfolio = Portfolio(10_000)
        tick = make_tick([self.snap(make_snapshot, "AAA", 0.6)], {"AAA": 100.0})
        trades = buy_phase(portfolio, tick, config)
        assert trades[0].shares == pytest.approx(7.0)
        assert portfolio.holdings["AAA"].entry_atr is None

    def test_max_new_positions_per_cycle(self, make_snapshot, make_tick):
        config = BacktestConfig.regime()
        portfolio = Portfolio(10_000)
        symbols = ["A1", "A2", "A3", "A4", "A5"]
        snaps = [self.snap(make_snapshot, s, 0.4 + i * 0.01) for i, s in enumerate(symbols)]
        tick = make_tick(snaps, {s: 10.0 for s in symbols}, atr={s: 0.2 for s in symbols})
        trades = buy_phase(portfolio, tick, config)
        assert [t.symbol for t in trades] == ["A5", "A4", "A3"]

    def test_cash_reserve(self, make_snapshot, make_tick):
        config = BacktestConfig.regime(transaction_cost_bps=0)
        portfolio = Portfolio(10_000)
        portfolio.cash = 600
        tick = make_tick([self.snap(make_snapshot, "AAA", 0.6)], {"AAA": 100.0})
        trades = buy_phase(portfolio, tick, config)
        # 가용 현금 600 - 10000 × 0.05 = 100 → 1주
        assert trades[0].shares == pytest.approx(1.0)


def test_affordable_shares_floors():
    assert affordable_shares(100.0, 3.0, 0.0) == pytest.approx(33.3333)
    assert affordable_shares(0.0, 3.0, 0.0) == 0.0
