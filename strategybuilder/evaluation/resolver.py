"""Value resolution — turns a condition operand into a number. Pure functions, no I/O.

An operand is either an ``Indicator`` reference or a literal string.  Each
is looked up through an ordered chain (snapshot keys, calculator configs,
candle fields); the first hit wins.  ``None`` means "not found".
"""

import re
from typing import Mapping, Optional, Sequence

from strategybuilder.models.candle import Candle
from strategybuilder.models.trade_rule import CalculatorConfig, Indicator

CANDLE_FIELDS = ("open", "high", "low", "close", "volume")

# Plain decimal / scientific notation with "." as the decimal point.
_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


def parse_number(text: str) -> Optional[float]:
    """Parse *text* as a decimal literal, or return ``None``.

    ``nan``/``inf`` spellings and digit-group separators are not numbers
    here, so they fall through to name lookups.
    """
    stripped = text.strip()
    if not _NUMBER_RE.match(stripped):
        return None
    return float(stripped)


def candle_value(name: str, candle: Optional[Candle]) -> Optional[float]:
    """Return the OHLCV field called *name* (case-insensitive).

    No candle means candle lookups are unavailable, not zero.
    """
    if candle is None or not name or not name.strip():
        return None
    key = name.lower()
    if key not in CANDLE_FIELDS:
        return None
    return float(getattr(candle, key))


def legacy_calculator_value(
    calculators: Optional[Sequence[CalculatorConfig]],
    name: str,
    indicators: Mapping[str, float],
) -> Optional[float]:
    """Find a calculator config called *name* and read its snapshot entry.

    Kept for compatibility with older rule documents.  Every hit here is
    already a hit of the direct ``indicators[name]`` lookup that runs
    first, so this never changes a result.
    """
    if not calculators or not name or not name.strip():
        return None
    config = next((c for c in calculators if c.name == name), None)
    if config is None or config.name not in indicators:
        return None
    return float(indicators[config.name])


def resolve_indicator(
    indicator: Optional[Indicator],
    calculators: Optional[Sequence[CalculatorConfig]],
    indicators: Mapping[str, float],
    candle: Optional[Candle],
) -> Optional[float]:
    """Resolve an indicator reference.

    Order: technical-indicator name in the snapshot, calculator name in
    the snapshot, calculator config lookup, candle field named like the
    calculator.
    """
    if indicator is None:
        return None

    technical_key = indicator.technical_indicator_name.value
    if technical_key in indicators:
        return float(indicators[technical_key])

    calculator_key = indicator.calculator_name
    if calculator_key in indicators:
        return float(indicators[calculator_key])

    value = legacy_calculator_value(calculators, calculator_key, indicators)
    if value is not None:
        return value

    return candle_value(calculator_key, candle)


def resolve_literal(
    text: Optional[str],
    calculators: Optional[Sequence[CalculatorConfig]],
    indicators: Mapping[str, float],
    candle: Optional[Candle],
) -> Optional[float]:
    """Resolve a literal ``Value`` string.

    Order: numeric literal, snapshot key, candle field, calculator config
    lookup.  A parseable number always wins over any name.
    """
    if text is None or not text.strip():
        return None

    number = parse_number(text)
    if number is not None:
        return number

    if text in indicators:
        return float(indicators[text])

    value = candle_value(text, candle)
    if value is not None:
        return value

    return legacy_calculator_value(calculators, text, indicators)
