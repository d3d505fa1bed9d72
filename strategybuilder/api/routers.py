"""Internal API routers — /strategies, /indicators, /signals endpoints.

No business logic. Delegates to the ``StrategyEngine`` injected at startup.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from strategybuilder.engine.strategy_engine import StrategyEngine
from strategybuilder.models.candle import Candle
from strategybuilder.models.events import StrategySignal
from strategybuilder.models.trade_rule import TradeRules
from strategybuilder.rules.serializer import TradeRuleSerializer

logger = logging.getLogger("strategybuilder.api")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_engine: Optional[StrategyEngine] = None  # Set via configure_routers()
_signal_history: list[dict] = []  # Recent emitted signals, newest last
_history_size: int = 50
_serializer = TradeRuleSerializer()


def configure_routers(engine: StrategyEngine, history_size: int = 50) -> None:
    """Inject the engine and start recording its signals.

    Args:
        engine: The ``StrategyEngine`` backing every endpoint.
        history_size: Max signals kept for ``/signals/history``.
    """
    global _engine, _history_size  # noqa: PLW0603
    if _engine is not None:
        _engine.unsubscribe(record_signal)
    engine.unsubscribe(record_signal)
    _engine = engine
    _history_size = history_size
    _signal_history.clear()
    engine.subscribe(record_signal)


def record_signal(signal: StrategySignal) -> None:
    """Append *signal* to the history log, dropping the oldest past the cap."""
    _signal_history.append(signal.to_dict())
    if len(_signal_history) > _history_size:
        del _signal_history[: len(_signal_history) - _history_size]


def _require_engine() -> StrategyEngine:
    if _engine is None:
        raise HTTPException(status_code=503, detail="Strategy engine not configured")
    return _engine


def _candle_from_dict(data: dict) -> Candle:
    try:
        return Candle(
            start=int(data.get("start", 0)),
            open=float(data["open"]),
            high=float(data["high"]),
            low=float(data["low"]),
            close=float(data["close"]),
            volume=float(data.get("volume", 0.0)),
            product_id=str(data.get("product_id", "")),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise HTTPException(status_code=422, detail=f"Invalid candle: {exc}") from exc


def _indicators_from_dict(data) -> dict[str, float]:
    if not isinstance(data, dict):
        raise HTTPException(status_code=422, detail="'indicators' must be an object")
    try:
        return {str(k): float(v) for k, v in data.items()}
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=422, detail=f"Invalid indicators: {exc}") from exc


# ── Endpoints ────────────────────────────────────────────────────────────


@router.get("/strategies")
async def list_strategies():
    return {"strategies": _require_engine().strategy_names}


@router.get("/strategies/{name}")
async def get_strategy(name: str):
    rule = _require_engine().get_strategy(name)
    if rule is None:
        raise HTTPException(status_code=404, detail=f"Unknown strategy: {name}")
    return _serializer.to_dict(TradeRules(rule=rule))


@router.post("/strategies")
async def load_strategy(body: dict):
    """Load a rule document from ``body["path"]``.

    A document that fails validation is reported as not registered.
    """
    engine = _require_engine()
    path = body.get("path")
    if not path:
        raise HTTPException(status_code=400, detail="'path' is required")
    try:
        registered = engine.initialize(path)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"registered": registered, "strategies": engine.strategy_names}


@router.post("/indicators")
async def calculate_indicators(body: dict):
    """Compute the indicator snapshot for ``body["candles"]`` (oldest first)."""
    candles = [_candle_from_dict(c) for c in body.get("candles") or []]
    return {"indicators": _require_engine().calculate_indicators(candles)}


@router.post("/strategies/{name}/evaluate")
async def evaluate_strategy(name: str, body: dict):
    engine = _require_engine()
    raw_candle = body.get("candle")
    if not isinstance(raw_candle, dict):
        raise HTTPException(status_code=400, detail="'candle' is required")
    candle = _candle_from_dict(raw_candle)
    indicators = _indicators_from_dict(body.get("indicators") or {})
    return {"strategy": name, "signal": engine.evaluate_strategy(name, candle, indicators)}


@router.get("/signals/history")
async def get_signal_history(limit: int = Query(default=20, ge=1, le=500)):
    return {"signals": _signal_history[-limit:]}
