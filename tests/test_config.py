import json
from pathlib import Path

import pandas as pd
import pytest

from adaptive_backtest.core.signal_types import Regime
from adaptive_backtest.utils.config import (
    BacktestConfig,
    Config,
    ConfigError,
    OptimizerConfig,
    StrategyConfig,
    validate_weights,
)


class TestWeights:
    def test_valid(self):
        validate_weights({"a": 0.5, "b": 0.495})

    @pytest.mark.parametrize("weights", [
        {},
        {"a": 0.5, "b": 0.4},
        {"a": 1.2, "b": -0.2},
    ])
    def test_invalid(self, weights):
        with pytest.raises(ConfigError):
            validate_weights(weights)


class TestBacktestConfig:
    def test_presets(self):
        daily = BacktestConfig.daily()
        regime = BacktestConfig.regime()
        assert (daily.max_position_size, daily.max_positions, daily.fee_rate) == (0.12, 50, 0.0)
        assert (regime.max_position_size, regime.max_positions) == (0.07, 15)
        assert regime.fee_rate == pytest.approx(0.0005)
        assert regime.min_hold_bars == 24
        assert BacktestConfig.regime(max_positions=5).max_positions == 5

    @pytest.mark.parametrize("overrides", [
        {"mode": "weekly"},
        {"initial_capital": -1},
        {"max_positions": 0},
        {"target_cash_ratio": 1.0},
        {"transaction_cost_bps": -1},
        {"profit_take": 0},
        {"atr_profit1_multiplier": 6.0},
        {"trade_interval_bars": 0},
        {"start_date": "2024-06-01", "end_date": "2024-01-01"},
        {"start_date": "not a date"},
    ])
    def test_validate_rejects(self, overrides):
        with pytest.raises(ConfigError):
            BacktestConfig.daily(**overrides).validate()

    def test_config_error_is_value_error(self):
        assert issubclass(ConfigError, ValueError)


class TestStrategyConfig:
    def test_regime_table(self):
        config = StrategyConfig(regime_weights={
            "TRENDING_UP": {"trend": 0.8, "reversion": 0.2},
            "UNKNOWN": {"trend": 0.5, "reversion": 0.5},
        })
        config.validate()
        table = config.regime_table()
        assert table[Regime.TRENDING_UP] == {"trend": 0.8, "reversion": 0.2}

    def test_regime_table_requires_unknown(self):
        config = StrategyConfig(regime_weights={"TRENDING_UP": {"trend": 0.8, "reversion": 0.2}})
        with pytest.raises(ConfigError):
            config.validate()

    def test_unknown_regime_key(self):
        config = StrategyConfig(regime_weights={"SIDEWAYS": {"trend": 0.5, "reversion": 0.5}})
        with pytest.raises(ConfigError):
            config.regime_table()

    def test_daily_weights(self):
        StrategyConfig(weights={
            "momentum": 0.30, "mean_reversion": 0.25, "sentiment": 0.15, "technical": 0.30,
        }).validate()

    @pytest.mark.parametrize("weights", [
        {"momentun": 0.30, "mean_reversion": 0.25, "sentiment": 0.15, "technical": 0.30},
        {"trend_momentum": 0.5, "bb_rsi_reversion": 0.5},
    ])
    def test_unknown_daily_strategy_weight(self, weights):
        with pytest.raises(ConfigError, match="알 수 없는 전략"):
            StrategyConfig(weights=weights).validate()

    def test_bad_pair(self):
        config = StrategyConfig(regime_weights={"UNKNOWN": {"trend": 0.9, "reversion": 0.5}})
        with pytest.raises(ConfigError):
            config.validate()


class TestOptimizerConfig:
    def test_ranges(self):
        config = OptimizerConfig("2023-01-03", "2023-12-29", "2024-01-02", "2024-12-31")
        (train_start, train_end), (test_start, test_end) = config.ranges()
        assert train_start == pd.Timestamp("2023-01-03")
        assert test_end == pd.Timestamp("2024-12-31")

    @pytest.mark.parametrize("bounds", [
        ("2023-01-03", "2024-01-02", "2024-01-02", "2024-12-31"),
        ("2024-01-02", "2024-12-31", "2023-01-03", "2023-12-29"),
        ("2023-01-03", None, "2024-01-02", "2024-12-31"),
        ("2023-12-29", "2023-01-03", "2024-01-02", "2024-12-31"),
    ])
    def test_bad_ranges(self, bounds):
        with pytest.raises(ConfigError):
            OptimizerConfig(*bounds).ranges()

    @pytest.mark.parametrize("overrides", [
        {"weight_names": ["momentum"]},
        {"weight_names": ["momentum", "momentum"]},
        {"step": 0},
        {"min_weight": 0.8, "max_weight": 0.7},
        {"top_n": 0},
        {"return_tolerance": -0.1},
    ])
    def test_validate_rejects(self, overrides):
        config = OptimizerConfig("2023-01-03", "2023-12-29", "2024-01-02", "2024-12-31", **overrides)
        with pytest.raises(ConfigError):
            config.validate()


class TestConfigFiles:
    def test_yaml_regime_preset(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "strategy:\n"
            "  tickers: [AAA, BBB]\n"
            "  unused_key: 1\n"
            "backtest:\n"
            "  mode: regime\n"
            "  initial_capital: 50000\n"
            "  not_a_field: true\n"
            "log_level: DEBUG\n",
            encoding="utf-8",
        )
        config = Config.from_yaml(path)
        assert config.strategy.tickers == ["AAA", "BBB"]
        assert config.backtest.mode == "regime"
        assert config.backtest.initial_capital == 50000
        assert config.backtest.max_positions == 15
        assert config.log_level == "DEBUG"
        config.validate()

    def test_empty_yaml_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        config = Config.from_yaml(path)
        assert config.backtest == BacktestConfig.daily()

    def test_yaml_round_trip(self, tmp_path):
        config = Config(strategy=StrategyConfig(
            tickers=["AAA"],
            weights={"momentum": 0.4, "mean_reversion": 0.2, "sentiment": 0.1, "technical": 0.3},
        ))
        path = tmp_path / "out" / "config.yaml"
        config.save_yaml(path)
        assert Config.from_yaml(path) == config

    def test_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"backtest": {"max_positions": 7}}), encoding="utf-8")
        assert Config.from_json(path).backtest.max_positions == 7

    def test_example_config_is_valid(self):
        config = Config.from_yaml(Path(__file__).parent.parent / "config.yaml")
        config.validate()
        config.optimizer.validate()
