"""Signal event payload delivered to strategy subscribers."""

from dataclasses import asdict, dataclass
from datetime import datetime


@dataclass(frozen=True)
class StrategySignal:
    """Emitted when a strategy's buy or sell rule fires on a candle."""

    strategy_name: str
    product_id: str
    is_buy: bool
    is_sell: bool
    price: float
    timestamp: datetime  # evaluation wall-clock time, UTC

    def to_dict(self) -> dict:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data
