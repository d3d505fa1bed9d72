"""Rule document (de)serialization — JSON <-> ``TradeRules``.

Property names match case-insensitively.  Enum-valued fields accept the
member name exactly or in any letter case; ``null``, empty and numeric
strings are rejected so enum ordinals can't sneak in.
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
import re
from pathlib import Path
from typing import Any, Optional, TypeVar, Union

from strategybuilder.calculators.models import (
    CalculatorKind,
    ParameterName,
    TechnicalName,
)
from strategybuilder.models.trade_rule import (
    BankrollConfig,
    CalculatorConfig,
    CalculatorParameter,
    ConditionConfig,
    Indicator,
    TradeRule,
    TradeRules,
    TradeSubRule,
)

logger = logging.getLogger("strategybuilder.rules")

E = TypeVar("E", bound=enum.Enum)
PathLike = Union[str, Path]

_INTEGER_RE = re.compile(r"^\s*[+-]?\d+\s*$")


def parse_enum(enum_cls: type[E], raw: Any) -> E:
    """Map *raw* onto a member of *enum_cls* by name.

    Raises ``ValueError`` for null, empty, numeric or unknown strings.
    """
    type_name = enum_cls.__name__
    if raw is None:
        raise ValueError(f"Cannot convert null to {type_name}")
    text = str(raw)
    if not text:
        raise ValueError(f"Cannot convert empty string to {type_name}")
    if isinstance(raw, (int, float)) or _INTEGER_RE.match(text):
        raise ValueError(f"Cannot convert '{text}' to {type_name}")

    if text in enum_cls.__members__:
        return enum_cls[text]
    lowered = text.lower()
    for name, member in enum_cls.__members__.items():
        if name.lower() == lowered:
            return member
    raise ValueError(f"Cannot convert '{text}' to {type_name}")


def _get(data: dict, key: str, default: Any = None) -> Any:
    """Case-insensitive property lookup."""
    if key in data:
        return data[key]
    lowered = key.lower()
    for k, v in data.items():
        if isinstance(k, str) and k.lower() == lowered:
            return v
    return default


def _as_text(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    if isinstance(raw, bool):
        return str(raw).lower()
    return str(raw)


def _as_float(raw: Any, where: str) -> float:
    if raw is None:
        return 0.0
    if isinstance(raw, bool) or not isinstance(raw, (int, float, str)):
        raise ValueError(f"{where} must be a number, got {type(raw).__name__}")
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{where} must be a number, got '{raw}'") from None


def _require_object(raw: Any, where: str) -> Optional[dict]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValueError(f"{where} must be a JSON object, got {type(raw).__name__}")
    return raw


def _require_list(raw: Any, where: str) -> list:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError(f"{where} must be a JSON array, got {type(raw).__name__}")
    return raw


# ── dict -> model ────────────────────────────────────────────────────────


def _indicator_from_dict(raw: Any, where: str) -> Optional[Indicator]:
    data = _require_object(raw, where)
    if data is None:
        return None
    return Indicator(
        calculator_name=_as_text(_get(data, "CalculatorName")) or "",
        technical_indicator_name=parse_enum(
            TechnicalName, _get(data, "TechnicalIndicatorName")
        ),
    )


def _condition_from_dict(raw: Any, where: str) -> ConditionConfig:
    data = _require_object(raw, where) or {}
    return ConditionConfig(
        indicator1=_indicator_from_dict(_get(data, "Indicator1"), f"{where}.Indicator1"),
        operator=_as_text(_get(data, "Operator")) or "",
        indicator2=_indicator_from_dict(_get(data, "Indicator2"), f"{where}.Indicator2"),
        value=_as_text(_get(data, "Value")),
    )


def _parameter_from_dict(raw: Any, where: str) -> CalculatorParameter:
    data = _require_object(raw, where) or {}
    return CalculatorParameter(
        name=parse_enum(ParameterName, _get(data, "Name")),
        value=_as_text(_get(data, "Value")) or "",
    )


def _calculator_from_dict(raw: Any, where: str) -> CalculatorConfig:
    data = _require_object(raw, where) or {}
    kind_raw = _get(data, "CalculatorName")
    return CalculatorConfig(
        name=_as_text(_get(data, "Name")) or "",
        calculator_name=None if kind_raw is None else parse_enum(CalculatorKind, kind_raw),
        technical_indicators=[
            parse_enum(TechnicalName, t)
            for t in _require_list(
                _get(data, "TechnicalIndicators"), f"{where}.TechnicalIndicators"
            )
        ],
        parameters=[
            _parameter_from_dict(p, f"{where}.Parameters[{i}]")
            for i, p in enumerate(
                _require_list(_get(data, "Parameters"), f"{where}.Parameters")
            )
        ],
    )


def _sub_rule_from_dict(raw: Any, where: str) -> Optional[TradeSubRule]:
    data = _require_object(raw, where)
    if data is None:
        return None
    return TradeSubRule(
        calculators=[
            _calculator_from_dict(c, f"{where}.Calculators[{i}]")
            for i, c in enumerate(
                _require_list(_get(data, "Calculators"), f"{where}.Calculators")
            )
        ],
        conditions=[
            _condition_from_dict(c, f"{where}.Conditions[{i}]")
            for i, c in enumerate(
                _require_list(_get(data, "Conditions"), f"{where}.Conditions")
            )
        ],
    )


def _rule_from_dict(data: dict) -> TradeRule:
    bankroll = _require_object(_get(data, "Bankroll"), "Rule.Bankroll")
    return TradeRule(
        name=_as_text(_get(data, "Name")) or "",
        candle_frequency=_as_text(_get(data, "CandleFrequency")) or "",
        min_profit=_as_float(_get(data, "MinProfit"), "Rule.MinProfit"),
        stop_loss=_as_float(_get(data, "StopLoss"), "Rule.StopLoss"),
        take_profit=_as_float(_get(data, "TakeProfit"), "Rule.TakeProfit"),
        bankroll=(
            None
            if bankroll is None
            else BankrollConfig(
                max_risk_per_trade=_as_float(
                    _get(bankroll, "MaxRiskPerTrade"), "Rule.Bankroll.MaxRiskPerTrade"
                ),
                min_entry_amount=_as_float(
                    _get(bankroll, "MinEntryAmount"), "Rule.Bankroll.MinEntryAmount"
                ),
            )
        ),
        buy_rule=_sub_rule_from_dict(_get(data, "BuyRule"), "Rule.BuyRule"),
        sell_rule=_sub_rule_from_dict(_get(data, "SellRule"), "Rule.SellRule"),
    )


# ── model -> dict ────────────────────────────────────────────────────────


def _indicator_to_dict(indicator: Optional[Indicator]) -> Optional[dict]:
    if indicator is None:
        return None
    return {
        "CalculatorName": indicator.calculator_name,
        "TechnicalIndicatorName": indicator.technical_indicator_name.name,
    }


def _sub_rule_to_dict(sub_rule: Optional[TradeSubRule]) -> Optional[dict]:
    if sub_rule is None:
        return None
    return {
        "Calculators": [
            {
                "Name": c.name,
                "CalculatorName": c.calculator_name.name if c.calculator_name else None,
                "TechnicalIndicators": [t.name for t in c.technical_indicators],
                "Parameters": [
                    {"Name": p.name.name, "Value": p.value} for p in c.parameters
                ],
            }
            for c in sub_rule.calculators
        ],
        "Conditions": [
            {
                "Indicator1": _indicator_to_dict(c.indicator1),
                "Operator": c.operator,
                "Indicator2": _indicator_to_dict(c.indicator2),
                "Value": c.value,
            }
            for c in sub_rule.conditions
        ],
    }


class TradeRuleSerializer:
    """Loads and saves rule documents."""

    def load_from_file(self, file_path: Optional[PathLike]) -> TradeRules:
        """Read and parse a rule file.

        Raises ``ValueError`` for a blank path or an empty file and
        ``FileNotFoundError`` if the file does not exist.
        """
        if file_path is None or not str(file_path).strip():
            raise ValueError("File path cannot be null or empty.")

        path = Path(file_path)
        if not path.is_file():
            raise FileNotFoundError(f"The specified file does not exist: {path}")

        text = path.read_text(encoding="utf-8")
        if not text.strip():
            raise ValueError(f"The specified file is empty: {path}")

        logger.debug("Loading rule document from %s", path)
        return self.load_from_json(text)

    async def load_from_file_async(self, file_path: Optional[PathLike]) -> TradeRules:
        return await asyncio.to_thread(self.load_from_file, file_path)

    def load_from_json(self, text: Optional[str]) -> TradeRules:
        """Parse a JSON rule document.

        Raises ``ValueError`` for blank input, malformed JSON, a missing
        ``Rule`` section or an unknown enum string.
        """
        if text is None or not text.strip():
            raise ValueError("JSON string cannot be null or empty.")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Error parsing JSON: {exc}") from exc
        return self.load_from_dict(data)

    def load_from_dict(self, data: Any) -> TradeRules:
        """Build ``TradeRules`` from an already-decoded JSON object."""
        if not isinstance(data, dict):
            raise ValueError("Rule document must be a JSON object.")
        rule = _require_object(_get(data, "Rule"), "Rule")
        if rule is None:
            raise ValueError("Rule document has no 'Rule' section.")
        return TradeRules(rule=_rule_from_dict(rule))

    def to_dict(self, rules: TradeRules) -> dict:
        rule = rules.rule
        return {
            "Rule": {
                "Name": rule.name,
                "CandleFrequency": rule.candle_frequency,
                "MinProfit": rule.min_profit,
                "StopLoss": rule.stop_loss,
                "TakeProfit": rule.take_profit,
                "Bankroll": (
                    None
                    if rule.bankroll is None
                    else {
                        "MaxRiskPerTrade": rule.bankroll.max_risk_per_trade,
                        "MinEntryAmount": rule.bankroll.min_entry_amount,
                    }
                ),
                "BuyRule": _sub_rule_to_dict(rule.buy_rule),
                "SellRule": _sub_rule_to_dict(rule.sell_rule),
            }
        }

    def to_json(self, rules: TradeRules) -> str:
        """Serialize to indented JSON with enum names as strings."""
        return json.dumps(self.to_dict(rules), indent=2)

    def save_to_file(self, rules: TradeRules, file_path: Optional[PathLike]) -> None:
        if file_path is None or not str(file_path).strip():
            raise ValueError("File path cannot be null or empty.")
        Path(file_path).write_text(self.to_json(rules), encoding="utf-8")

    async def save_to_file_async(
        self, rules: TradeRules, file_path: Optional[PathLike]
    ) -> None:
        await asyncio.to_thread(self.save_to_file, rules, file_path)
