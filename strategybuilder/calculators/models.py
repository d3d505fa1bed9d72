"""Calculator library data models — kinds, output names, parameters, results."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


class CalculatorKind(enum.Enum):
    """Indicator calculators the factory can build."""

    SMA = "SMA"
    EMA = "EMA"
    RSI = "RSI"
    MACD = "MACD"
    BBANDS = "BBANDS"
    ATR = "ATR"
    ADX = "ADX"


class TechnicalName(enum.Enum):
    """Named output series produced by calculators."""

    MOVINGAVERAGE = "MOVINGAVERAGE"
    EXPONENTIALMOVINGAVERAGE = "EXPONENTIALMOVINGAVERAGE"
    RSI = "RSI"
    MACD = "MACD"
    MACDSIGNAL = "MACDSIGNAL"
    MACDHIST = "MACDHIST"
    BBANDSUPPER = "BBANDSUPPER"
    BBANDSMIDDLE = "BBANDSMIDDLE"
    BBANDSLOWER = "BBANDSLOWER"
    ATR = "ATR"
    ADX = "ADX"


class ParameterName(enum.Enum):
    """Calculator parameter names as they appear in rule documents."""

    Period = "Period"
    FastPeriod = "FastPeriod"
    SlowPeriod = "SlowPeriod"
    SignalPeriod = "SignalPeriod"
    StdDev = "StdDev"


class ParameterValueType(enum.Enum):
    INT = "int"
    DOUBLE = "double"


@dataclass(frozen=True)
class ParameterConstraint:
    """Declared type and default for one calculator parameter."""

    value_type: ParameterValueType
    default: str


@dataclass(frozen=True)
class IndicatorPoint:
    """One point of an indicator series."""

    timestamp: float  # epoch seconds
    value: float


@dataclass(frozen=True)
class CalculatorResults:
    """Output series of a single calculator run, keyed by output name.

    Insertion order follows the calculator's declared outputs, so the
    first entry is the calculator's primary series.
    """

    results: dict[str, list[IndicatorPoint]] = field(default_factory=dict)


# Column order of the candle table handed to calculators.
CANDLE_COLUMNS: tuple[str, ...] = ("time", "open", "high", "low", "close", "volume")
