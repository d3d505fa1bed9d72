"""StrategyBuilder — application configuration.

Loads .env variables into a typed config object.
Validates required variables on startup.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


_REQUIRED_VARS = [
    "STRATEGY_RULES_PATH",
]

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    rules_path: str  # a rule JSON file or a directory of them
    log_level: str
    api_port: int
    parallel_calculators: bool
    max_workers: int
    signal_history_size: int

    @property
    def rule_files(self) -> list[Path]:
        """Rule documents to load, sorted by name for a directory."""
        path = Path(self.rules_path)
        if path.is_dir():
            return sorted(path.glob("*.json"))
        return [path]


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the missing variable when a
    required variable is absent.
    """
    load_dotenv(dotenv_path=env_path)

    missing = [v for v in _REQUIRED_VARS if not os.environ.get(v)]
    if missing:
        raise ValueError(
            f"Missing required environment variable(s): {', '.join(missing)}"
        )

    return Config(
        rules_path=os.environ["STRATEGY_RULES_PATH"],
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        api_port=int(os.environ.get("API_PORT", "8080")),
        parallel_calculators=(
            os.environ.get("PARALLEL_CALCULATORS", "false").strip().lower()
            in _TRUE_VALUES
        ),
        max_workers=int(os.environ.get("MAX_WORKERS", "4")),
        signal_history_size=int(os.environ.get("SIGNAL_HISTORY_SIZE", "50")),
    )
