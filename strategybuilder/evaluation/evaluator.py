"""Condition evaluation — decides whether a buy or sell sub-rule fires.

Stateless: one evaluator can be shared by any number of threads.
"""

from typing import Mapping, Optional

from strategybuilder.evaluation.resolver import resolve_indicator, resolve_literal
from strategybuilder.models.candle import Candle
from strategybuilder.models.trade_rule import ConditionConfig, Indicator, TradeSubRule


class RuleEvaluationError(ValueError):
    """A condition could not be evaluated (missing operand or bad operator)."""


def _describe(indicator: Optional[Indicator]) -> tuple[Optional[str], Optional[str]]:
    if indicator is None:
        return None, None
    return indicator.calculator_name, indicator.technical_indicator_name.value


class TradeRuleEvaluator:
    """Evaluates a ``TradeSubRule`` against an indicator snapshot and a candle."""

    def evaluate(
        self,
        rule: Optional[TradeSubRule],
        indicators: Mapping[str, float],
        candle: Optional[Candle],
    ) -> bool:
        """Return ``True`` only if every condition of *rule* holds.

        A missing rule or an empty condition list never fires.  Stops at
        the first false condition.  Raises ``RuleEvaluationError`` when an
        operand cannot be resolved or the operator is not supported.
        """
        if rule is None or not rule.conditions:
            return False

        for condition in rule.conditions:
            if not self.evaluate_condition(condition, rule, indicators, candle):
                return False
        return True

    def evaluate_condition(
        self,
        condition: ConditionConfig,
        rule: TradeSubRule,
        indicators: Mapping[str, float],
        candle: Optional[Candle],
    ) -> bool:
        calculators = rule.calculators

        left = resolve_indicator(condition.indicator1, calculators, indicators, candle)
        if left is None:
            calc, tech = _describe(condition.indicator1)
            raise RuleEvaluationError(
                f"Indicator1 '{calc}' with technical indicator '{tech}' not found."
            )

        if condition.indicator2 is not None:
            right = resolve_indicator(condition.indicator2, calculators, indicators, candle)
            if right is None:
                calc, tech = _describe(condition.indicator2)
                raise RuleEvaluationError(
                    f"Indicator2 '{calc}' with technical indicator '{tech}' not found."
                )
        elif condition.value is not None and condition.value.strip():
            right = resolve_literal(condition.value, calculators, indicators, candle)
            if right is None:
                raise RuleEvaluationError(
                    f"Value '{condition.value}' not found or could not be parsed."
                )
        else:
            raise RuleEvaluationError(
                "Condition must have either Indicator2 or Value specified."
            )

        try:
            operator = condition.comparison
        except ValueError as exc:
            raise RuleEvaluationError(str(exc)) from exc

        return operator.compare(left, right)
