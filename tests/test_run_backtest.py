from datetime import date

import pandas as pd
import pytest

import run_backtest
from adaptive_backtest.utils.config import Config, ConfigError


class TestParseParam:
    @pytest.mark.parametrize("text, expected", [
        ("max_positions=20", ("max_positions", 20)),
        ("buy_threshold=0.05", ("buy_threshold", 0.05)),
        ("stop_loss=-3", ("stop_loss", -3)),
        ("flag=yes", ("flag", True)),
        ("flag=False", ("flag", False)),
        ("benchmark_symbol=QQQ", ("benchmark_symbol", "QQQ")),
    ])
    def test_values(self, text, expected):
        assert run_backtest.parse_param(text) == expected


class TestApplyOverrides:
    def test_backtest_and_strategy_params(self):
        config = Config()
        run_backtest.apply_overrides(config, None, ["max_positions=20", "momentum.short_period=10"])
        assert config.backtest.max_positions == 20
        assert config.strategy.params == {"momentum": {"short_period": 10}}

    def test_mode_switch_uses_preset(self):
        config = Config()
        config.backtest.initial_capital = 50_000
        config.backtest.start_date = "2024-02-01"
        run_backtest.apply_overrides(config, "regime", [])
        assert config.backtest.mode == "regime"
        assert config.backtest.max_positions == 15
        assert config.backtest.initial_capital == 50_000
        assert config.backtest.start_date == "2024-02-01"

    def test_unknown_key(self):
        with pytest.raises(ConfigError):
            run_backtest.apply_overrides(Config(), None, ["no_such_field=1"])


class TestSampleData:
    def test_daily_sample_is_reproducible(self):
        a = run_backtest.generate_sample_data("AAPL", date(2024, 1, 2), date(2024, 3, 29))
        b = run_backtest.generate_sample_data("AAPL", date(2024, 1, 2), date(2024, 3, 29))
        pd.testing.assert_frame_equal(a, b)
        assert (a["high"] >= a["low"]).all()
        assert list(a.columns) == ["date", "open", "high", "low", "close", "volume"]

    def test_intraday_sample_and_daily_aggregate(self):
        intraday = run_backtest.generate_intraday_sample("AAPL", date(2024, 5, 1), date(2024, 5, 3))
        assert len(intraday) == 3 * run_backtest.SESSION_BARS

        daily = run_backtest.aggregate_daily(intraday)
        assert len(daily) == 3
        first_day = intraday[intraday["timestamp"].dt.normalize() == pd.Timestamp("2024-05-01")]
        assert daily["close"].iloc[0] == first_day["close"].iloc[-1]
        assert daily["high"].iloc[0] == first_day["high"].max()
        assert daily["volume"].iloc[0] == first_day["volume"].sum()

    def test_load_sample_regime(self):
        config = Config()
        config.strategy.tickers = ["SPY", "AAA"]
        run_backtest.apply_overrides(config, "regime", [])
        config.backtest.start_date = "2024-06-03"
        config.backtest.end_date = "2024-06-07"
        daily, intraday = run_backtest.load_data(config, "sample")
        assert set(intraday) == {"SPY", "AAA"}
        assert intraday["AAA"]["timestamp"].iloc[-1].date() == date(2024, 6, 7)
        assert len(daily["AAA"]) == len(pd.bdate_range("2024-01-02", "2024-06-07"))

    def test_load_csv(self, tmp_path, make_daily_frame):
        make_daily_frame([1.0, 2.0, 3.0]).to_csv(tmp_path / "AAA.csv", index=False)
        config = Config()
        config.strategy.tickers = ["AAA", "MISSING"]
        daily, intraday = run_backtest.load_data(config, "csv", str(tmp_path))
        assert list(daily) == ["AAA"]
        assert intraday is None
