"""Structural validation of a trade rule — collects human-readable errors."""

from typing import Optional

from strategybuilder.models.trade_rule import Operator, TradeRule, TradeSubRule


class TradeRuleValidator:
    """Checks a ``TradeRule`` for missing or out-of-range settings.

    Never raises; every problem found is reported in the returned list.
    """

    def validate(self, rule: Optional[TradeRule]) -> tuple[bool, list[str]]:
        errors: list[str] = []
        if rule is None:
            errors.append("Rule section is missing.")
            return False, errors

        if not rule.name or not rule.name.strip():
            errors.append("Rule.Name is required.")
        if not rule.candle_frequency or not rule.candle_frequency.strip():
            errors.append("Rule.CandleFrequency is required.")
        if rule.bankroll is None:
            errors.append("Bankroll configuration is required.")
        if rule.min_profit <= 0:
            errors.append("Rule.MinProfit must be greater than 0.")
        if rule.stop_loss <= 0:
            errors.append("Rule.StopLoss must be greater than 0.")
        if rule.take_profit <= 0:
            errors.append("Rule.TakeProfit must be greater than 0.")
        if rule.bankroll is not None:
            if rule.bankroll.max_risk_per_trade <= 0:
                errors.append("Rule.Bankroll.MaxRiskPerTrade must be greater than 0.")
            if rule.bankroll.min_entry_amount <= 0:
                errors.append("Rule.Bankroll.MinEntryAmount must be greater than 0.")

        self._validate_sub_rule("BuyRule", rule.buy_rule, errors)
        self._validate_sub_rule("SellRule", rule.sell_rule, errors)

        return not errors, errors

    def _validate_sub_rule(
        self,
        rule_name: str,
        sub_rule: Optional[TradeSubRule],
        errors: list[str],
    ) -> None:
        if sub_rule is None:
            errors.append(f"{rule_name} is missing.")
            return

        if not sub_rule.calculators:
            errors.append(f"{rule_name}.Calculators is required and cannot be empty.")
        if not sub_rule.conditions:
            errors.append(f"{rule_name}.Conditions is required and cannot be empty.")

        for calc in sub_rule.calculators or []:
            if not calc.name or not calc.name.strip():
                errors.append(f"{rule_name}.Calculator.Name is required.")
            if calc.calculator_name is None:
                errors.append(f"{rule_name}.Calculator.CalculatorName is required.")
            if not calc.parameters:
                errors.append(
                    f"{rule_name}.Calculator.Parameters is required and cannot be empty."
                )
            for param in calc.parameters or []:
                if not param.value or not param.value.strip():
                    errors.append(f"{rule_name}.Calculator.Parameter.Value is required.")

        for condition in sub_rule.conditions or []:
            if condition.indicator1 is None:
                errors.append(f"{rule_name}.Condition.Indicator1 is required.")
            if not condition.operator or not condition.operator.strip():
                errors.append(f"{rule_name}.Condition.Operator is required.")
            else:
                try:
                    Operator.parse(condition.operator)
                except ValueError:
                    errors.append(
                        f"{rule_name}.Condition.Operator '{condition.operator}' "
                        "is not supported."
                    )
            if condition.indicator2 is None and (
                not condition.value or not condition.value.strip()
            ):
                errors.append(
                    f"{rule_name}.Condition must have either Indicator2 or Value specified."
                )
