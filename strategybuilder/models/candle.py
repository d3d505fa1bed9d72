"""Market data model consumed by rule evaluation."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Candle:
    """A single OHLCV bar for one product."""

    start: int  # open time, epoch milliseconds
    open: float
    high: float
    low: float
    close: float
    volume: float
    product_id: str = ""
