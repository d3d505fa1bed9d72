"""Calculator factory — maps calculator kinds to parameter constraints and math.

Used by the indicator pipeline to turn a ``CalculatorConfig`` into a
runnable calculator instance.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

import numpy as np
import pandas as pd

from strategybuilder.calculators import indicators
from strategybuilder.calculators.models import (
    CANDLE_COLUMNS,
    CalculatorKind,
    CalculatorResults,
    IndicatorPoint,
    ParameterConstraint,
    ParameterValueType,
    TechnicalName,
)

_INT = ParameterValueType.INT
_DOUBLE = ParameterValueType.DOUBLE

ComputeFunc = Callable[[pd.DataFrame, dict], dict[TechnicalName, pd.Series]]


@dataclass(frozen=True)
class CalculatorSpec:
    """Parameter constraints and output computation for one calculator kind."""

    constraints: dict[str, ParameterConstraint]
    compute: ComputeFunc


def _macd(frame: pd.DataFrame, p: dict) -> dict[TechnicalName, pd.Series]:
    macd, signal, hist = indicators.calculate_macd(
        frame, p["FastPeriod"], p["SlowPeriod"], p["SignalPeriod"]
    )
    return {
        TechnicalName.MACD: macd,
        TechnicalName.MACDSIGNAL: signal,
        TechnicalName.MACDHIST: hist,
    }


def _bbands(frame: pd.DataFrame, p: dict) -> dict[TechnicalName, pd.Series]:
    upper, middle, lower = indicators.calculate_bollinger(
        frame, p["Period"], p["StdDev"]
    )
    return {
        TechnicalName.BBANDSUPPER: upper,
        TechnicalName.BBANDSMIDDLE: middle,
        TechnicalName.BBANDSLOWER: lower,
    }


CALCULATOR_REGISTRY: dict[CalculatorKind, CalculatorSpec] = {
    CalculatorKind.SMA: CalculatorSpec(
        {"Period": ParameterConstraint(_INT, "20")},
        lambda f, p: {TechnicalName.MOVINGAVERAGE: indicators.calculate_sma(f, p["Period"])},
    ),
    CalculatorKind.EMA: CalculatorSpec(
        {"Period": ParameterConstraint(_INT, "20")},
        lambda f, p: {
            TechnicalName.EXPONENTIALMOVINGAVERAGE: indicators.calculate_ema(f, p["Period"])
        },
    ),
    CalculatorKind.RSI: CalculatorSpec(
        {"Period": ParameterConstraint(_INT, "14")},
        lambda f, p: {TechnicalName.RSI: indicators.calculate_rsi(f, p["Period"])},
    ),
    CalculatorKind.MACD: CalculatorSpec(
        {
            "FastPeriod": ParameterConstraint(_INT, "12"),
            "SlowPeriod": ParameterConstraint(_INT, "26"),
            "SignalPeriod": ParameterConstraint(_INT, "9"),
        },
        _macd,
    ),
    CalculatorKind.BBANDS: CalculatorSpec(
        {
            "Period": ParameterConstraint(_INT, "20"),
            "StdDev": ParameterConstraint(_DOUBLE, "2.0"),
        },
        _bbands,
    ),
    CalculatorKind.ATR: CalculatorSpec(
        {"Period": ParameterConstraint(_INT, "14")},
        lambda f, p: {TechnicalName.ATR: indicators.calculate_atr(f, p["Period"])},
    ),
    CalculatorKind.ADX: CalculatorSpec(
        {"Period": ParameterConstraint(_INT, "14")},
        lambda f, p: {TechnicalName.ADX: indicators.calculate_adx(f, p["Period"])},
    ),
}


def _get_spec(kind: CalculatorKind) -> CalculatorSpec:
    if kind not in CALCULATOR_REGISTRY:
        raise KeyError(
            f"Unknown calculator '{kind}'. "
            f"Available: {', '.join(k.value for k in CALCULATOR_REGISTRY)}"
        )
    return CALCULATOR_REGISTRY[kind]


def get_parameter_constraints(kind: CalculatorKind) -> dict[str, ParameterConstraint]:
    """Return the declared parameters of *kind*, keyed by parameter name.

    Raises ``KeyError`` if the kind is not registered.
    """
    return dict(_get_spec(kind).constraints)


def coerce_parameter(value: str, constraint: ParameterConstraint) -> Any:
    """Parse *value* as the constraint's declared type.

    Raises ``ValueError`` if the string is not a valid int/double.
    """
    text = value.strip()
    if constraint.value_type is ParameterValueType.INT:
        return int(text)
    return float(text)


def as_frame(data) -> pd.DataFrame:
    """Accept a candle table as a DataFrame or an ``(n, 6)`` numeric array."""
    if isinstance(data, pd.DataFrame):
        return data
    array = np.asarray(data, dtype=float)
    if array.ndim != 2 or array.shape[1] != len(CANDLE_COLUMNS):
        raise ValueError(
            f"Candle data must have shape (n, {len(CANDLE_COLUMNS)}), "
            f"got {array.shape}"
        )
    return pd.DataFrame(array, columns=list(CANDLE_COLUMNS))


class TechnicalCalculator:
    """A configured calculator instance.

    Args:
        kind: Which indicator math to run.
        parameters: Parsed parameter values keyed by parameter name.
        name: The user-chosen name from the rule document.
        context: Opaque caller context, kept for the caller's benefit.
    """

    def __init__(
        self,
        kind: CalculatorKind,
        parameters: dict[str, Any],
        name: str,
        context: Optional[Any] = None,
    ) -> None:
        self.kind = kind
        self.parameters = parameters
        self.name = name
        self.context = context
        self._compute = _get_spec(kind).compute

    def __repr__(self) -> str:
        return f"TechnicalCalculator({self.name!r}, {self.kind.value}, {self.parameters})"

    def calculate(self, data) -> CalculatorResults:
        """Run the indicator over the full candle table.

        Returns one series per output name, warm-up ``NaN``s dropped.
        Raises ``ValueError`` when the history is too short.
        """
        frame = as_frame(data)
        times = frame["time"].to_numpy(dtype=float)

        results: dict[str, list[IndicatorPoint]] = {}
        for output, series in self._compute(frame, self.parameters).items():
            values = series.to_numpy(dtype=float)
            results[output.value] = [
                IndicatorPoint(timestamp=float(t), value=float(v))
                for t, v in zip(times, values)
                if not np.isnan(v)
            ]
        return CalculatorResults(results=results)


def create_calculator(
    kind: CalculatorKind,
    parameters: dict[str, str],
    name: str,
    context: Optional[Any] = None,
) -> TechnicalCalculator:
    """Build a calculator of *kind* from string parameters.

    Parameters the caller did not supply fall back to the declared default.
    Unknown parameter names are ignored.  Raises ``KeyError`` for an
    unregistered kind and ``ValueError`` for a value that does not parse.
    """
    constraints = get_parameter_constraints(kind)
    parsed = {
        key: coerce_parameter(parameters.get(key, constraint.default), constraint)
        for key, constraint in constraints.items()
    }
    return TechnicalCalculator(kind, parsed, name, context)
