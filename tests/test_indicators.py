import pytest

from adaptive_backtest.analysis import indicators


class TestMovingAverages:
    def test_sma_last_window(self):
        assert indicators.sma([1, 2, 3, 4, 5], 3) == pytest.approx(4.0)

    def test_sma_short_input(self):
        assert indicators.sma([1, 2], 3) is None

    def test_ema_seeded_with_sma(self):
        # seed = mean(1,2,3) = 2, k = 0.5 → 4*0.5 + 2*0.5 = 3
        assert indicators.ema_series([1, 2, 3, 4], 3) == pytest.approx([2.0, 3.0])
        assert indicators.ema([1, 2, 3, 4], 3) == pytest.approx(3.0)

    def test_ema_short_input(self):
        assert indicators.ema_series([1, 2], 3) == []
        assert indicators.ema([1, 2], 3) is None


class TestRSI:
    def test_all_gains_is_100(self):
        assert indicators.rsi(list(range(1, 30))) == 100.0

    def test_all_losses_is_0(self):
        assert indicators.rsi(list(range(30, 1, -1))) == pytest.approx(0.0)

    def test_short_input_neutral(self):
        assert indicators.rsi([1, 2, 3]) == 50.0

    def test_mixed_window(self):
        # 마지막 2개 변화량: +2, -1 → avg_gain 1, avg_loss 0.5 → RS 2 → 66.67
        assert indicators.rsi([10, 12, 11], period=2) == pytest.approx(100 - 100 / 3)


class TestMACD:
    def test_requires_slow_plus_signal(self):
        assert indicators.macd(list(range(34))) is None
        assert indicators.macd(list(range(35))) is not None

    def test_rising_series_positive(self):
        result = indicators.macd([100 * 1.01 ** i for i in range(60)])
        assert result.macd > 0
        assert result.prev_histogram is not None
        assert result.histogram == pytest.approx(result.macd - result.signal)


class TestBollinger:
    def test_constant_series_zero_bandwidth(self):
        bands = indicators.bollinger_bands([50.0] * 20)
        assert bands.std == 0
        assert bands.bandwidth == 0
        assert bands.upper == bands.lower == 50.0

    def test_bandwidth_formula(self):
        values = [9.0, 11.0] * 10   # mean 10, population std 1
        bands = indicators.bollinger_bands(values, 20, 2.0)
        assert bands.middle == pytest.approx(10.0)
        assert bands.std == pytest.approx(1.0)
        assert bands.bandwidth == pytest.approx(0.4)
        assert bands.position(10.0) == pytest.approx(0.5)

    def test_short_input(self):
        assert indicators.bollinger_bands([1.0] * 5) is None


class TestVolatility:
    def test_atr_constant_range(self):
        closes = [100.0] * 20
        highs = [101.0] * 20
        lows = [99.0] * 20
        assert indicators.atr(highs, lows, closes, 14) == pytest.approx(2.0)

    def test_atr_short_input(self):
        assert indicators.atr([1.0] * 14, [1.0] * 14, [1.0] * 14, 14) is None

    def test_adx_strong_trend(self):
        highs = [101.0 + i for i in range(40)]
        lows = [99.0 + i for i in range(40)]
        closes = [100.0 + i for i in range(40)]
        assert indicators.adx(highs, lows, closes, 14) > 25

    def test_adx_short_input(self):
        assert indicators.adx([1.0] * 28, [1.0] * 28, [1.0] * 28, 14) is None


class TestMisc:
    def test_rate_of_change(self):
        assert indicators.rate_of_change([100, 105, 110], 2) == pytest.approx(10.0)

    def test_rate_of_change_zero_base(self):
        assert indicators.rate_of_change([0, 5], 1) == 0.0

    def test_rate_of_change_short(self):
        assert indicators.rate_of_change([1, 2], 2) is None

    def test_zscore_zero_std(self):
        assert indicators.zscore(5.0, 3.0, 0.0) == 0.0

    def test_vwap_zero_volume_neutral(self):
        result = indicators.vwap_zscore([11, 12], [9, 10], [10, 11], [0, 0])
        assert result.zscore == 0.0
        assert result.volume == 0.0

    def test_vwap_flat_prices(self):
        result = indicators.vwap_zscore([10] * 6, [10] * 6, [10] * 6, [100] * 6)
        assert result.vwap == pytest.approx(10.0)
        assert result.std == 0.0
        assert result.zscore == 0.0

    def test_vwap_above_mean(self):
        closes = [10, 10, 10, 10, 10, 12]
        result = indicators.vwap_zscore(closes, closes, closes, [100] * 6)
        assert result.zscore > 0
