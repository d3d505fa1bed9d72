"""Indicator pipeline — registers calculators and turns candle history into a snapshot.

The calculator registry is shared by every strategy of an engine and is
guarded by a lock, so registration and computation may run from any
thread.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence

import pandas as pd

from strategybuilder.calculators.factory import (
    TechnicalCalculator,
    coerce_parameter,
    create_calculator,
    get_parameter_constraints,
)
from strategybuilder.calculators.models import CANDLE_COLUMNS, ParameterValueType
from strategybuilder.models.candle import Candle
from strategybuilder.models.trade_rule import CalculatorConfig, TradeSubRule

logger = logging.getLogger("strategybuilder.pipeline")


def candles_to_frame(candles: Sequence[Candle]) -> pd.DataFrame:
    """Convert candles (oldest first) into the calculator table.

    ``time`` is the candle open time in epoch seconds.
    """
    rows = [
        (c.start // 1000, c.open, c.high, c.low, c.close, c.volume)
        for c in candles
    ]
    return pd.DataFrame(rows, columns=list(CANDLE_COLUMNS), dtype=float)


def build_parameters(config: CalculatorConfig) -> dict[str, str]:
    """Match config parameters against the calculator's declared constraints.

    Each matched value is checked against the declared type.  Raises
    ``ValueError`` naming the parameter and calculator on a bad value and
    ``KeyError`` when the calculator kind is unknown.
    """
    if config.calculator_name is None:
        raise KeyError(f"Calculator '{config.name}' has no calculator kind.")

    parameters: dict[str, str] = {}
    for key, constraint in get_parameter_constraints(config.calculator_name).items():
        supplied = next((p for p in config.parameters if p.name.value == key), None)
        if supplied is None:
            continue
        try:
            parameters[key] = str(coerce_parameter(supplied.value, constraint))
        except ValueError:
            type_name = (
                "integer" if constraint.value_type is ParameterValueType.INT else "double"
            )
            raise ValueError(
                f"Invalid {type_name} value '{supplied.value}' for parameter "
                f"{key} in calculator {config.name}"
            ) from None
    return parameters


class IndicatorPipeline:
    """Registry of named calculators plus snapshot computation.

    Args:
        parallel: Run calculators on a thread pool instead of sequentially.
        max_workers: Pool size when *parallel* is set.
    """

    def __init__(self, parallel: bool = False, max_workers: int = 4) -> None:
        self._calculators: dict[str, TechnicalCalculator] = {}
        self._lock = threading.Lock()
        self._parallel = parallel
        self._max_workers = max_workers

    # ── Registry ─────────────────────────────────────────────────────────

    @property
    def calculator_names(self) -> list[str]:
        with self._lock:
            return list(self._calculators.keys())

    def get_calculator(self, name: str) -> Optional[TechnicalCalculator]:
        with self._lock:
            return self._calculators.get(name)

    def register_calculators(self, sub_rule: Optional[TradeSubRule]) -> list[str]:
        """Create and register every calculator declared by *sub_rule*.

        A calculator that fails to build is logged and skipped; the rest are
        still registered.  Re-registering a name replaces the old instance.

        Returns:
            Names of the calculators that failed to register.
        """
        if sub_rule is None or not sub_rule.calculators:
            return []

        failed: list[str] = []
        for config in sub_rule.calculators:
            try:
                parameters = build_parameters(config)
                calculator = create_calculator(
                    config.calculator_name, parameters, config.name, None
                )
            except Exception:
                logger.exception(
                    "Error creating calculator %s of type %s",
                    config.name,
                    config.calculator_name,
                )
                failed.append(config.name)
                continue

            with self._lock:
                self._calculators[config.name] = calculator
            logger.debug(
                "Registered calculator %s of type %s",
                config.name,
                config.calculator_name.value,
            )
        return failed

    # ── Computation ──────────────────────────────────────────────────────

    def calculate_indicators(
        self, candles: Optional[Sequence[Candle]]
    ) -> dict[str, float]:
        """Run every registered calculator over *candles* (oldest first).

        Returns ``{calculator name: latest value}``.  No candles or no
        calculators gives an empty snapshot.  A calculator that raises is
        logged and left out of the snapshot.
        """
        if not candles:
            logger.warning("No candles provided for indicator calculation")
            return {}

        with self._lock:
            calculators = list(self._calculators.items())
        if not calculators:
            logger.warning("No calculators registered for indicator calculation")
            return {}

        frame = candles_to_frame(candles)

        if self._parallel and len(calculators) > 1:
            with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
                latest = list(
                    pool.map(lambda item: self._latest_value(*item, frame), calculators)
                )
        else:
            latest = [self._latest_value(name, calc, frame) for name, calc in calculators]

        return {
            name: value
            for (name, _), value in zip(calculators, latest)
            if value is not None
        }

    def _latest_value(
        self, name: str, calculator: TechnicalCalculator, frame: pd.DataFrame
    ) -> Optional[float]:
        """Most recent value of the calculator's first output series.

        Multi-output calculators (MACD, BBANDS) only contribute their first
        series, stored under the calculator's own name.
        """
        try:
            results = calculator.calculate(frame)
        except Exception:
            logger.exception("Calculator %s failed; skipping", name)
            return None

        if not results.results:
            logger.warning("Calculator %s returned null or empty results", name)
            return None

        first_series = next(iter(results.results.values()))
        if not first_series:
            logger.warning("Calculator %s returned null or empty results", name)
            return None
        return first_series[-1].value
