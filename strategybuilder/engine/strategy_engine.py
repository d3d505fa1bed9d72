"""StrategyEngine — owns loaded strategies and turns evaluations into signals.

Lifecycle per strategy: load a rule document → validate → register its
calculators → (compute indicators ⇄ evaluate) for as many cycles as the
caller wants.  Registries are lock-guarded; evaluation itself is stateless,
so any number of threads may evaluate the same strategy at once.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Iterable, Mapping, Optional, Sequence

from strategybuilder.config import Config
from strategybuilder.engine.pipeline import IndicatorPipeline
from strategybuilder.evaluation.evaluator import TradeRuleEvaluator
from strategybuilder.models.candle import Candle
from strategybuilder.models.events import StrategySignal
from strategybuilder.models.trade_rule import TradeRule
from strategybuilder.rules.configuration import TradeRuleConfiguration
from strategybuilder.rules.serializer import PathLike, TradeRuleSerializer
from strategybuilder.rules.validator import TradeRuleValidator

logger = logging.getLogger("strategybuilder.engine")

SignalHandler = Callable[[StrategySignal], None]
ConfigurationFactory = Callable[[], TradeRuleConfiguration]


class StrategyEngine:
    """Registers strategies, computes indicators and evaluates buy/sell rules.

    Args:
        configuration_factory: Returns a fresh ``TradeRuleConfiguration``
            for every strategy loaded.
        pipeline: Calculator registry shared by all strategies.
        clock: Returns the current UTC time for signal timestamps.
    """

    def __init__(
        self,
        configuration_factory: ConfigurationFactory,
        pipeline: Optional[IndicatorPipeline] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._configuration_factory = configuration_factory
        self._pipeline = pipeline if pipeline is not None else IndicatorPipeline()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._strategies: dict[str, TradeRuleConfiguration] = {}
        self._subscribers: list[SignalHandler] = []
        self._lock = threading.Lock()

    # ── Public API ───────────────────────────────────────────────────────

    @property
    def pipeline(self) -> IndicatorPipeline:
        return self._pipeline

    @property
    def strategy_names(self) -> list[str]:
        """Names of successfully registered strategies."""
        with self._lock:
            return list(self._strategies.keys())

    def get_strategy(self, name: str) -> Optional[TradeRule]:
        with self._lock:
            configuration = self._strategies.get(name)
        return configuration.rule if configuration else None

    def subscribe(self, handler: SignalHandler) -> None:
        """Add *handler* to the end of the signal subscriber list."""
        with self._lock:
            self._subscribers.append(handler)

    def unsubscribe(self, handler: SignalHandler) -> None:
        with self._lock:
            if handler in self._subscribers:
                self._subscribers.remove(handler)

    # ── Lifecycle ────────────────────────────────────────────────────────

    def initialize(self, configuration_path: PathLike) -> bool:
        """Load, validate and register the strategy in *configuration_path*.

        Validation failures are logged and leave the strategy unregistered.
        Loader errors (missing file, malformed JSON) propagate.

        Returns:
            ``True`` if the strategy was registered.
        """
        return self._register(self._load(configuration_path))

    def initialize_many(self, configuration_paths: Iterable[PathLike]) -> list[str]:
        """Initialize every path in order; return the registered strategy names."""
        registered: list[str] = []
        for path in configuration_paths:
            configuration = self._load(path)
            if self._register(configuration):
                registered.append(configuration.rule.name)
        return registered

    def register_rule(self, rule: TradeRule) -> bool:
        """Validate and register an already-built rule."""
        configuration = self._configuration_factory()
        configuration.load_rule(rule)
        return self._register(configuration)

    def _load(self, configuration_path: PathLike) -> TradeRuleConfiguration:
        configuration = self._configuration_factory()
        try:
            configuration.initialize(configuration_path)
        except Exception:
            logger.exception("Error initializing strategy from %s", configuration_path)
            raise
        return configuration

    def _register(self, configuration: TradeRuleConfiguration) -> bool:
        valid, errors = configuration.validate()
        if not valid:
            for error in errors:
                logger.error("Configuration validation error: %s", error)
            return False

        rule = configuration.rule
        with self._lock:
            self._strategies[rule.name] = configuration

        self._pipeline.register_calculators(rule.buy_rule)
        self._pipeline.register_calculators(rule.sell_rule)

        logger.info("Strategy %s initialized successfully", rule.name)
        return True

    # ── Evaluation cycle ─────────────────────────────────────────────────

    def calculate_indicators(
        self, candles: Optional[Sequence[Candle]]
    ) -> dict[str, float]:
        """Snapshot of every registered calculator's latest value."""
        return self._pipeline.calculate_indicators(candles)

    def evaluate_strategy(
        self,
        strategy_name: str,
        candle: Optional[Candle],
        indicators: Mapping[str, float],
    ) -> bool:
        """Evaluate the buy and sell rules of *strategy_name*.

        Unknown strategies, a missing candle and evaluation errors return
        ``False``; errors are logged, never raised.  When either rule fires,
        every subscriber receives a ``StrategySignal`` before this returns.
        """
        with self._lock:
            configuration = self._strategies.get(strategy_name)
        if configuration is None:
            logger.warning("Strategy %s not found", strategy_name)
            return False
        if candle is None:
            logger.warning("No candle provided for strategy %s", strategy_name)
            return False

        rule = configuration.rule
        try:
            buy = configuration.evaluate(rule.buy_rule, indicators, candle)
            sell = configuration.evaluate(rule.sell_rule, indicators, candle)
        except Exception:
            logger.exception("Error evaluating strategy %s", strategy_name)
            return False

        if buy or sell:
            self._emit(
                StrategySignal(
                    strategy_name=strategy_name,
                    product_id=candle.product_id,
                    is_buy=buy,
                    is_sell=sell,
                    price=candle.close,
                    timestamp=self._clock(),
                )
            )
        return buy or sell

    def _emit(self, signal: StrategySignal) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for handler in subscribers:
            try:
                handler(signal)
            except Exception:
                logger.exception(
                    "Signal subscriber %r failed for strategy %s",
                    handler,
                    signal.strategy_name,
                )


def build_engine(config: Optional[Config] = None) -> StrategyEngine:
    """Wire serializer, validator, evaluator and pipeline into an engine."""
    evaluator = TradeRuleEvaluator()
    serializer = TradeRuleSerializer()
    validator = TradeRuleValidator()

    pipeline = IndicatorPipeline(
        parallel=config.parallel_calculators if config else False,
        max_workers=config.max_workers if config else 4,
    )
    return StrategyEngine(
        configuration_factory=lambda: TradeRuleConfiguration(
            evaluator, serializer, validator
        ),
        pipeline=pipeline,
    )
