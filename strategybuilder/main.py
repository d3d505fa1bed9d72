"""StrategyBuilder — application entry point.

Boots the FastAPI internal server and provides the CLI entry point for
serving the API or evaluating a CSV of candles offline.
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI

from strategybuilder.api.routers import router
from strategybuilder.models.candle import Candle

app = FastAPI(title="StrategyBuilder Internal API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("strategybuilder")


@app.get("/health")
async def health():
    return {"status": "ok"}


def load_candles_csv(path: str, product_id: Optional[str] = None) -> list[Candle]:
    """Read candles (oldest first) from a CSV file.

    Expects ``start, open, high, low, close, volume`` columns; an optional
    ``product_id`` column overrides *product_id*.
    """
    import pandas as pd

    df = pd.read_csv(path)
    missing = {"start", "open", "high", "low", "close", "volume"} - set(df.columns)
    if missing:
        raise ValueError(f"Candle CSV {path} is missing column(s): {', '.join(sorted(missing))}")

    df = df.sort_values("start").reset_index(drop=True)
    default_product = product_id or Path(path).stem
    return [
        Candle(
            start=int(row.start),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
            product_id=str(getattr(row, "product_id", default_product)),
        )
        for row in df.itertuples(index=False)
    ]


def run_offline(engine, candles: list[Candle]) -> dict[str, bool]:
    """Compute indicators over *candles* and evaluate the last one.

    Returns ``{strategy_name: signalled}`` for every registered strategy.
    """
    if not candles:
        logger.warning("No candles to evaluate.")
        return {}

    snapshot = engine.calculate_indicators(candles)
    logger.info("Indicator snapshot: %s", snapshot)
    return {
        name: engine.evaluate_strategy(name, candles[-1], snapshot)
        for name in engine.strategy_names
    }


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli() -> None:
    """Parse CLI arguments and dispatch to the appropriate mode."""
    import argparse
    import dataclasses
    import os

    from strategybuilder.api.routers import configure_routers
    from strategybuilder.config import load_config
    from strategybuilder.engine.strategy_engine import build_engine

    parser = argparse.ArgumentParser(description="StrategyBuilder rule engine")
    parser.add_argument("--env", help="Path to a .env file")
    parser.add_argument("--rules", help="Rule file or directory (overrides STRATEGY_RULES_PATH)")
    parser.add_argument("--candles", help="CSV of candles to evaluate offline")
    parser.add_argument("--product", help="Product id for candles without one")
    parser.add_argument("--serve", action="store_true", help="Run the internal API")
    args = parser.parse_args()

    if args.rules:
        os.environ.setdefault("STRATEGY_RULES_PATH", args.rules)
    config = load_config(args.env)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.rules:
        config = dataclasses.replace(config, rules_path=args.rules)

    engine = build_engine(config)
    registered = engine.initialize_many(config.rule_files)
    logger.info("Loaded %d strategy(ies): %s", len(registered), ", ".join(registered))

    engine.subscribe(
        lambda s: logger.info(
            "SIGNAL %s %s buy=%s sell=%s price=%.5f",
            s.strategy_name, s.product_id, s.is_buy, s.is_sell, s.price,
        )
    )

    if args.candles:
        results = run_offline(engine, load_candles_csv(args.candles, args.product))
        for name, fired in results.items():
            logger.info("Strategy %s: %s", name, "signal" if fired else "no signal")

    if args.serve:
        import uvicorn

        configure_routers(engine, history_size=config.signal_history_size)
        logger.info("API available at http://localhost:%d", config.api_port)
        uvicorn.run(app, host="0.0.0.0", port=config.api_port, log_level="info")


if __name__ == "__main__":
    _run_cli()
