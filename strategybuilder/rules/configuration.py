"""One loaded strategy rule bundled with its loader, validator and evaluator."""

from typing import Mapping, Optional

from strategybuilder.evaluation.evaluator import TradeRuleEvaluator
from strategybuilder.models.candle import Candle
from strategybuilder.models.trade_rule import TradeRule, TradeSubRule
from strategybuilder.rules.serializer import PathLike, TradeRuleSerializer
from strategybuilder.rules.validator import TradeRuleValidator


class TradeRuleConfiguration:
    """Holds the rule of a single strategy.

    Args:
        evaluator: Evaluates sub-rules of the loaded rule.
        serializer: Reads the rule document.
        validator: Checks the loaded rule.
    """

    def __init__(
        self,
        evaluator: TradeRuleEvaluator,
        serializer: TradeRuleSerializer,
        validator: TradeRuleValidator,
    ) -> None:
        self._evaluator = evaluator
        self._serializer = serializer
        self._validator = validator
        self._rule: Optional[TradeRule] = None

    @property
    def rule(self) -> Optional[TradeRule]:
        """The loaded rule, ``None`` before :meth:`initialize`."""
        return self._rule

    def initialize(self, file_path: PathLike) -> None:
        """Load the rule document at *file_path*.

        Loader errors (missing file, bad JSON) propagate to the caller.
        """
        self._rule = self._serializer.load_from_file(file_path).rule

    def load_rule(self, rule: TradeRule) -> None:
        """Use an already-built rule instead of reading a file."""
        self._rule = rule

    def validate(self) -> tuple[bool, list[str]]:
        return self._validator.validate(self._rule)

    def evaluate(
        self,
        rule: Optional[TradeSubRule],
        indicators: Mapping[str, float],
        candle: Optional[Candle],
    ) -> bool:
        return self._evaluator.evaluate(rule, indicators, candle)
