"""Technical indicators — SMA, EMA, RSI, MACD, Bollinger Bands, ATR, ADX.

Pure functions over a columnar candle table (pandas DataFrame with
``time, open, high, low, close, volume`` columns), no I/O.  Every function
returns series aligned with the input rows; entries before the warm-up
period are ``NaN``.
"""

import numpy as np
import pandas as pd


def _check_periods(label: str, *periods: int) -> None:
    for period in periods:
        if period < 1:
            raise ValueError(f"{label} period must be at least 1, got {period}")


def _require(frame: pd.DataFrame, needed: int, label: str) -> None:
    if len(frame) < needed:
        raise ValueError(
            f"Need at least {needed} candles for {label}, got {len(frame)}"
        )


def _ema_values(values: np.ndarray, period: int) -> np.ndarray:
    """EMA seeded with the SMA of the first *period* non-NaN values.

    ``EMA_today = value × k + EMA_yesterday × (1 - k)`` with
    ``k = 2 / (period + 1)``.  Leading NaNs in *values* are skipped.
    """
    out = np.full(len(values), np.nan)
    valid = np.flatnonzero(~np.isnan(values))
    if len(valid) < period:
        return out

    start = valid[0]
    k = 2.0 / (period + 1)
    seed_idx = start + period - 1
    out[seed_idx] = values[start : seed_idx + 1].mean()
    for i in range(seed_idx + 1, len(values)):
        out[i] = values[i] * k + out[i - 1] * (1 - k)
    return out


def calculate_sma(frame: pd.DataFrame, period: int = 20) -> pd.Series:
    """Simple moving average of closes over *period* bars."""
    _check_periods("SMA", period)
    _require(frame, period, f"SMA({period})")
    return frame["close"].rolling(window=period).mean()


def calculate_ema(frame: pd.DataFrame, period: int = 20) -> pd.Series:
    """Exponential moving average of closes, seeded with the SMA.

    Raises ``ValueError`` if fewer than *period* candles are provided.
    """
    _check_periods("EMA", period)
    _require(frame, period, f"EMA({period})")
    closes = frame["close"].to_numpy(dtype=float)
    return pd.Series(_ema_values(closes, period), index=frame.index)


# ── RSI ──────────────────────────────────────────────────────────────────


def calculate_rsi(frame: pd.DataFrame, period: int = 14) -> pd.Series:
    """Calculate Wilder's Relative Strength Index.

    Algorithm (Wilder-smoothed):
        1. delta = close[i] - close[i-1]
        2. Separate gains (positive) and losses (|negative|).
        3. Seed average gain/loss = SMA of first *period* deltas.
        4. Subsequent: avg = (prev_avg × (period-1) + current) / period
        5. RSI = 100 - 100 / (1 + avg_gain / avg_loss)

    Requires at least ``period + 1`` candles.
    """
    _check_periods("RSI", period)
    _require(frame, period + 1, f"RSI({period})")

    closes = frame["close"].to_numpy(dtype=float)
    deltas = np.diff(closes)
    gains = np.clip(deltas, 0.0, None)
    losses = np.abs(np.clip(deltas, None, 0.0))

    rsi = np.full(len(closes), np.nan)

    def _rsi_from_avgs(ag: float, al: float) -> float:
        if al == 0:
            return 100.0
        return 100.0 - 100.0 / (1.0 + ag / al)

    avg_gain = gains[:period].mean()
    avg_loss = losses[:period].mean()
    rsi[period] = _rsi_from_avgs(avg_gain, avg_loss)

    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        # deltas are offset by one bar
        rsi[i + 1] = _rsi_from_avgs(avg_gain, avg_loss)

    return pd.Series(rsi, index=frame.index)


# ── MACD ─────────────────────────────────────────────────────────────────


def calculate_macd(
    frame: pd.DataFrame,
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> tuple[pd.Series, pd.Series, pd.Series]:
    """Calculate MACD line, signal line and histogram.

    MACD   = EMA(close, fast) − EMA(close, slow)
    Signal = EMA(MACD, signal)
    Hist   = MACD − Signal

    Requires at least ``slow_period + signal_period - 1`` candles.
    """
    _check_periods("MACD", fast_period, slow_period, signal_period)
    if fast_period >= slow_period:
        raise ValueError(
            f"MACD fast period ({fast_period}) must be below "
            f"slow period ({slow_period})"
        )
    _require(
        frame,
        slow_period + signal_period - 1,
        f"MACD({fast_period},{slow_period},{signal_period})",
    )

    closes = frame["close"].to_numpy(dtype=float)
    macd = _ema_values(closes, fast_period) - _ema_values(closes, slow_period)
    signal = _ema_values(macd, signal_period)
    hist = macd - signal

    return (
        pd.Series(macd, index=frame.index),
        pd.Series(signal, index=frame.index),
        pd.Series(hist, index=frame.index),
    )


# ── Bollinger Bands ──────────────────────────────────────────────────────


def calculate_bollinger(
    frame: pd.DataFrame,
    period: int = 20,
    std_dev: float = 2.0,
) -> tuple[pd.Series, pd.Series, pd.Series]:
    """Calculate Bollinger Bands.

    Middle = SMA(close, *period*)
    Upper  = middle + *std_dev* × σ
    Lower  = middle − *std_dev* × σ

    σ is the population standard deviation of the window.
    Returns ``(upper, middle, lower)``.
    """
    _check_periods("Bollinger", period)
    _require(frame, period, f"Bollinger({period})")

    window = frame["close"].rolling(window=period)
    middle = window.mean()
    sigma = window.std(ddof=0)
    return middle + std_dev * sigma, middle, middle - std_dev * sigma


# ── ATR ──────────────────────────────────────────────────────────────────


def _true_range(frame: pd.DataFrame) -> np.ndarray:
    """TR = max(high - low, |high - prev_close|, |low - prev_close|).

    Index 0 has no previous close and is ``NaN``.
    """
    high = frame["high"].to_numpy(dtype=float)
    low = frame["low"].to_numpy(dtype=float)
    prev_close = np.roll(frame["close"].to_numpy(dtype=float), 1)

    tr = np.maximum.reduce(
        [high - low, np.abs(high - prev_close), np.abs(low - prev_close)]
    )
    tr[0] = np.nan
    return tr


def calculate_atr(frame: pd.DataFrame, period: int = 14) -> pd.Series:
    """Average True Range — simple average of the last *period* true ranges.

    Requires at least ``period + 1`` candles (need a previous close for TR).
    """
    _check_periods("ATR", period)
    _require(frame, period + 1, f"ATR({period})")
    tr = pd.Series(_true_range(frame), index=frame.index)
    return tr.rolling(window=period).mean()


# ── ADX ──────────────────────────────────────────────────────────────────


def calculate_adx(frame: pd.DataFrame, period: int = 14) -> pd.Series:
    """Calculate the Average Directional Index (ADX).

    Algorithm:
        1. +DM / -DM directional movement per bar.
        2. Wilder-smooth +DM, -DM, and TR over *period*.
        3. +DI = 100 × smoothed_+DM / smoothed_TR
        4. -DI = 100 × smoothed_-DM / smoothed_TR
        5. DX = 100 × |+DI − −DI| / (+DI + −DI)
        6. ADX = Wilder-smoothed DX over *period*.

    Requires at least ``2 × period + 1`` candles.
    """
    _check_periods("ADX", period)
    _require(frame, 2 * period + 1, f"ADX({period})")

    n = len(frame)
    high = frame["high"].to_numpy(dtype=float)
    low = frame["low"].to_numpy(dtype=float)

    up_move = np.zeros(n)
    down_move = np.zeros(n)
    up_move[1:] = high[1:] - high[:-1]
    down_move[1:] = low[:-1] - low[1:]

    plus_dm = np.where((up_move > down_move) & (up_move > 0), up_move, 0.0)
    minus_dm = np.where((down_move > up_move) & (down_move > 0), down_move, 0.0)
    tr = np.nan_to_num(_true_range(frame))

    def _compute_dx(s_pdm: float, s_mdm: float, s_tr: float) -> float:
        if s_tr == 0:
            return 0.0
        plus_di = 100.0 * s_pdm / s_tr
        minus_di = 100.0 * s_mdm / s_tr
        di_sum = plus_di + minus_di
        if di_sum == 0:
            return 0.0
        return 100.0 * abs(plus_di - minus_di) / di_sum

    s_pdm = plus_dm[1 : period + 1].sum()
    s_mdm = minus_dm[1 : period + 1].sum()
    s_tr = tr[1 : period + 1].sum()
    dx_values = [_compute_dx(s_pdm, s_mdm, s_tr)]

    for i in range(period + 1, n):
        s_pdm = s_pdm - s_pdm / period + plus_dm[i]
        s_mdm = s_mdm - s_mdm / period + minus_dm[i]
        s_tr = s_tr - s_tr / period + tr[i]
        dx_values.append(_compute_dx(s_pdm, s_mdm, s_tr))

    # dx_values[0] corresponds to bar *period*; the seed averages the
    # first *period* DX values and lands on bar 2 × period − 1
    adx = np.full(n, np.nan)
    adx_prev = sum(dx_values[:period]) / period
    adx[2 * period - 1] = adx_prev
    for j in range(period, len(dx_values)):
        adx_prev = (adx_prev * (period - 1) + dx_values[j]) / period
        adx[period + j] = adx_prev

    return pd.Series(adx, index=frame.index)
