"""Deterministic tests for the indicator math.

Same input = same output, always. Expected values are hand-computed.
"""

import pandas as pd
import pytest

from strategybuilder.calculators.indicators import (
    calculate_adx,
    calculate_atr,
    calculate_bollinger,
    calculate_ema,
    calculate_macd,
    calculate_rsi,
    calculate_sma,
)
from strategybuilder.calculators.models import CANDLE_COLUMNS


# ── Helpers ──────────────────────────────────────────────────────────────


def _frame(closes: list[float], spread: float = 1.0) -> pd.DataFrame:
    rows = [
        (i * 60.0, c, c + spread, c - spread, c, 100.0)
        for i, c in enumerate(closes)
    ]
    return pd.DataFrame(rows, columns=list(CANDLE_COLUMNS))


# ── Moving averages ──────────────────────────────────────────────────────


class TestSMA:
    def test_hand_computed(self):
        sma = calculate_sma(_frame([1, 2, 3, 4, 5]), period=3)
        assert sma.isna().tolist()[:2] == [True, True]
        assert sma.iloc[2:].tolist() == pytest.approx([2.0, 3.0, 4.0])

    def test_insufficient_data(self):
        with pytest.raises(ValueError, match=r"SMA\(20\)"):
            calculate_sma(_frame([1, 2, 3]), period=20)


class TestEMA:
    def test_seeded_with_sma(self):
        # k = 0.5; seed = 2.0; then 4*0.5 + 2*0.5 = 3.0; 5*0.5 + 3*0.5 = 4.0
        ema = calculate_ema(_frame([1, 2, 3, 4, 5]), period=3)
        assert ema.iloc[:2].isna().all()
        assert ema.iloc[2:].tolist() == pytest.approx([2.0, 3.0, 4.0])

    def test_insufficient_data(self):
        with pytest.raises(ValueError):
            calculate_ema(_frame([1, 2]), period=3)


# ── RSI ──────────────────────────────────────────────────────────────────


class TestRSI:
    def test_all_gains_is_100(self):
        rsi = calculate_rsi(_frame([1, 2, 3, 4, 5]), period=3)
        assert rsi.iloc[:3].isna().all()
        assert rsi.iloc[3] == pytest.approx(100.0)
        assert rsi.iloc[4] == pytest.approx(100.0)

    def test_all_losses_is_0(self):
        rsi = calculate_rsi(_frame([5, 4, 3, 2, 1]), period=3)
        assert rsi.iloc[-1] == pytest.approx(0.0)

    def test_balanced_moves_is_50(self):
        # gains 1,0 ; losses 0,1 -> avg gain == avg loss
        rsi = calculate_rsi(_frame([1, 2, 1]), period=2)
        assert rsi.iloc[2] == pytest.approx(50.0)

    def test_insufficient_data(self):
        with pytest.raises(ValueError, match=r"RSI\(14\)"):
            calculate_rsi(_frame([1.0] * 10), period=14)


# ── MACD ─────────────────────────────────────────────────────────────────


class TestMACD:
    def test_flat_market_is_zero(self):
        macd, signal, hist = calculate_macd(_frame([10.0] * 6), 2, 3, 2)
        assert macd.iloc[-1] == pytest.approx(0.0)
        assert signal.iloc[-1] == pytest.approx(0.0)
        assert hist.iloc[-1] == pytest.approx(0.0)

    def test_uptrend_is_positive(self):
        macd, signal, _ = calculate_macd(_frame([float(i) for i in range(1, 11)]), 2, 4, 3)
        assert macd.iloc[-1] > 0
        assert not pd.isna(signal.iloc[-1])

    def test_signal_warm_up(self):
        # MACD valid from bar 2, signal seeded one bar later
        macd, signal, _ = calculate_macd(_frame([10.0] * 4), 2, 3, 2)
        assert pd.isna(signal.iloc[2])
        assert not pd.isna(signal.iloc[3])
        assert not pd.isna(macd.iloc[2])

    def test_fast_must_be_below_slow(self):
        with pytest.raises(ValueError, match="fast period"):
            calculate_macd(_frame([1.0] * 50), 26, 12, 9)


# ── Bollinger / ATR / ADX ────────────────────────────────────────────────


class TestBollinger:
    def test_flat_market_bands_collapse(self):
        upper, middle, lower = calculate_bollinger(_frame([10.0] * 5), period=3)
        assert upper.iloc[-1] == pytest.approx(10.0)
        assert middle.iloc[-1] == pytest.approx(10.0)
        assert lower.iloc[-1] == pytest.approx(10.0)

    def test_population_std(self):
        # window [1, 2, 3]: mean 2, population sigma sqrt(2/3)
        upper, middle, lower = calculate_bollinger(_frame([1, 2, 3]), period=3, std_dev=1.0)
        sigma = (2.0 / 3.0) ** 0.5
        assert middle.iloc[-1] == pytest.approx(2.0)
        assert upper.iloc[-1] == pytest.approx(2.0 + sigma)
        assert lower.iloc[-1] == pytest.approx(2.0 - sigma)


class TestATR:
    def test_constant_range(self):
        # high - low = 2 dominates |high - prev_close| = |low - prev_close| = 1
        atr = calculate_atr(_frame([10.0] * 4), period=3)
        assert atr.iloc[-1] == pytest.approx(2.0)

    def test_needs_previous_close(self):
        with pytest.raises(ValueError, match=r"ATR\(3\)"):
            calculate_atr(_frame([10.0] * 3), period=3)


class TestADX:
    def test_flat_market_is_zero(self):
        adx = calculate_adx(_frame([10.0] * 7), period=3)
        assert adx.iloc[:5].isna().all()
        assert adx.iloc[5] == pytest.approx(0.0)
        assert adx.iloc[6] == pytest.approx(0.0)

    def test_steady_uptrend_is_100(self):
        adx = calculate_adx(_frame([float(i) for i in range(10, 20)]), period=3)
        assert adx.iloc[-1] == pytest.approx(100.0)

    def test_insufficient_data(self):
        with pytest.raises(ValueError, match=r"ADX\(3\)"):
            calculate_adx(_frame([10.0] * 6), period=3)


# ── Period validation ────────────────────────────────────────────────────


class TestPeriodValidation:
    @pytest.mark.parametrize(
        "func", [calculate_sma, calculate_ema, calculate_rsi, calculate_atr, calculate_adx]
    )
    @pytest.mark.parametrize("period", [0, -3])
    def test_non_positive_period_rejected(self, func, period):
        with pytest.raises(ValueError, match="period must be at least 1"):
            func(_frame([1, 2, 3, 4, 5, 6, 7, 8]), period=period)

    def test_bollinger_zero_period(self):
        with pytest.raises(ValueError, match="period must be at least 1"):
            calculate_bollinger(_frame([1, 2, 3]), period=0)

    def test_macd_negative_signal_period(self):
        with pytest.raises(ValueError, match="MACD period must be at least 1"):
            calculate_macd(_frame([float(c) for c in range(1, 13)]), 2, 4, -1)
