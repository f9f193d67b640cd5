import json
import math

import pandas as pd
import pytest

from adaptive_backtest.backtest.metrics import (
    annualized_return,
    compute_metrics,
    infer_periods_per_year,
    max_drawdown,
    sharpe_ratio,
)
from adaptive_backtest.data.portfolio import TradeRecord

TS = pd.Timestamp("2024-03-01")


def sell(gain_loss, gain_loss_percent, fee=0.0):
    return TradeRecord(
        timestamp=TS, symbol="AAA", action="SELL", shares=1.0, price=100.0,
        total=100.0, fee=fee, gain_loss=gain_loss, gain_loss_percent=gain_loss_percent,
    )


def buy(fee=0.0):
    return TradeRecord(timestamp=TS, symbol="AAA", action="BUY", shares=1.0, price=100.0, total=100.0, fee=fee)


class TestSharpe:
    def test_zero_variance(self):
        assert sharpe_ratio([0.01] * 10) == 0.0
        assert sharpe_ratio([0.0] * 60) == 0.0
        assert sharpe_ratio([0.0] * 30, periods_per_year=252 * 6) == 0.0
        assert sharpe_ratio([]) == 0.0

    def test_annualized(self):
        returns = [0.01, -0.005, 0.02, 0.0]
        rf = 0.05 / 252
        excess = [r - rf for r in returns]
        mean = sum(excess) / len(excess)
        std = math.sqrt(sum((e - mean) ** 2 for e in excess) / len(excess))
        assert sharpe_ratio(returns) == pytest.approx(mean / std * math.sqrt(252))

    def test_periods_per_year_scales(self):
        returns = [0.01, -0.005, 0.02, 0.0]
        assert sharpe_ratio(returns, 252 * 6, 0.0) == pytest.approx(sharpe_ratio(returns, 252, 0.0) * math.sqrt(6))


class TestDrawdown:
    def test_peak_to_trough(self):
        assert max_drawdown([0.1, -0.5], 10_000) == pytest.approx(50.0)

    def test_recovery_keeps_worst(self):
        assert max_drawdown([-0.2, 0.5, -0.1], 10_000) == pytest.approx(20.0)

    def test_monotone_gain(self):
        assert max_drawdown([0.01] * 5, 10_000) == 0.0


class TestFrequency:
    def test_daily_ticks(self):
        days = list(pd.bdate_range("2024-01-02", periods=10))
        assert infer_periods_per_year(days) == 252

    def test_intraday_ticks(self):
        stamps = []
        for day in pd.bdate_range("2024-01-02", periods=4):
            stamps += [day + pd.Timedelta(hours=10, minutes=30 * i) for i in range(6)]
        assert infer_periods_per_year(stamps) == pytest.approx(252 * 6)

    def test_too_few_ticks(self):
        assert infer_periods_per_year([TS]) == 252

    def test_annualized_return(self):
        assert annualized_return(11_000, 10_000, 252, 252) == pytest.approx(10.0)
        assert annualized_return(11_000, 10_000, 0, 252) == 0.0


class TestComputeMetrics:
    def test_trade_statistics(self):
        trades = [buy(fee=1.0), sell(30.0, 15.0, fee=0.5), sell(-10.0, -5.0), sell(0.0, 0.0)]
        m = compute_metrics([0.0, 0.01], [10_000, 10_100], trades, 10_000)

        assert m.total_trades == 4
        assert m.buy_trades == 1
        assert m.sell_trades == 3
        assert m.winning_trades == 1
        assert m.losing_trades == 2
        assert m.win_rate == pytest.approx(100 / 3)
        assert m.avg_win_pct == pytest.approx(15.0)
        assert m.avg_loss_pct == pytest.approx(-2.5)
        assert m.profit_factor == pytest.approx(3.0)
        assert m.total_pnl == pytest.approx(20.0)
        assert m.total_fees == pytest.approx(1.5)
        assert m.total_return == pytest.approx(1.0)

    def test_no_losses_profit_factor_not_applicable(self):
        m = compute_metrics([0.01], [10_100], [sell(5.0, 5.0)], 10_000)
        assert m.profit_factor is None
        assert "N/A" in m.summary()
        json.dumps(m.to_dict(), allow_nan=False)

    def test_benchmark_alpha(self):
        m = compute_metrics([0.05], [10_500], [], 10_000, benchmark_values=[10_000, 10_200])
        assert m.benchmark_return == pytest.approx(2.0)
        assert m.alpha == pytest.approx(3.0)

    def test_empty_run(self):
        m = compute_metrics([], [], [], 10_000)
        assert m.total_return == 0.0
        assert m.final_value == 10_000
        assert m.win_rate == 0.0
        assert m.benchmark_return is None
        assert "백테스트 성과 리포트" in m.summary()
