"""Trade rule models — typed representation of a strategy rule document.

Instances are built once by the rule serializer and treated as read-only
afterwards.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from functools import cached_property
from typing import Optional

from strategybuilder.calculators.models import (
    CalculatorKind,
    ParameterName,
    TechnicalName,
)

# Absolute tolerance for the "=" operator.
EQUALITY_TOLERANCE = 1e-6


class Operator(enum.Enum):
    """Comparison operators a condition may use."""

    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="
    EQ = "="

    @classmethod
    def parse(cls, symbol: Optional[str]) -> "Operator":
        """Map an operator symbol to its enum member.

        Raises ``ValueError`` for anything other than ``> < >= <= =``.
        """
        try:
            return cls(symbol)
        except ValueError:
            raise ValueError(f"Invalid operator '{symbol}'.") from None

    def compare(self, left: float, right: float) -> bool:
        if self is Operator.GT:
            return left > right
        if self is Operator.LT:
            return left < right
        if self is Operator.GE:
            return left >= right
        if self is Operator.LE:
            return left <= right
        return abs(left - right) < EQUALITY_TOLERANCE


@dataclass(frozen=True)
class Indicator:
    """Points at one output of one configured calculator."""

    calculator_name: str
    technical_indicator_name: TechnicalName


@dataclass(frozen=True)
class ConditionConfig:
    """``indicator1 <operator> (indicator2 | value)``."""

    indicator1: Optional[Indicator]
    operator: str
    indicator2: Optional[Indicator] = None
    value: Optional[str] = None

    @cached_property
    def comparison(self) -> Operator:
        """The parsed operator, resolved on first access."""
        return Operator.parse(self.operator)


@dataclass(frozen=True)
class CalculatorParameter:
    name: ParameterName
    value: str


@dataclass(frozen=True)
class CalculatorConfig:
    """One named calculator instance declared by a rule."""

    name: str
    calculator_name: Optional[CalculatorKind]
    technical_indicators: list[TechnicalName] = field(default_factory=list)
    parameters: list[CalculatorParameter] = field(default_factory=list)


@dataclass(frozen=True)
class TradeSubRule:
    """Calculators plus an AND-combined list of conditions."""

    calculators: list[CalculatorConfig] = field(default_factory=list)
    conditions: list[ConditionConfig] = field(default_factory=list)


@dataclass(frozen=True)
class BankrollConfig:
    max_risk_per_trade: float = 0.0
    min_entry_amount: float = 0.0


@dataclass(frozen=True)
class TradeRule:
    """A named strategy with buy and sell triggers.

    Profit/risk fields are carried for downstream consumers and are not
    evaluated here.
    """

    name: str
    candle_frequency: str
    buy_rule: Optional[TradeSubRule]
    sell_rule: Optional[TradeSubRule]
    bankroll: Optional[BankrollConfig] = None
    min_profit: float = 0.0
    stop_loss: float = 0.0
    take_profit: float = 0.0


@dataclass(frozen=True)
class TradeRules:
    """Top-level rule document wrapper."""

    rule: TradeRule
