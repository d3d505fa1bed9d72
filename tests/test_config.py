"""Tests for strategybuilder.config — environment variable loading and validation."""

import pytest

from strategybuilder.config import Config, load_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Ensure StrategyBuilder env vars are cleared between tests.

    setenv first so values written by load_dotenv are rolled back too.
    """
    for var in [
        "STRATEGY_RULES_PATH",
        "LOG_LEVEL",
        "API_PORT",
        "PARALLEL_CALCULATORS",
        "MAX_WORKERS",
        "SIGNAL_HISTORY_SIZE",
    ]:
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)


def _set_required(monkeypatch, path="rules/basic.json"):
    """Set the minimum required environment variables."""
    monkeypatch.setenv("STRATEGY_RULES_PATH", path)


class TestLoadConfig:
    def test_loads_required_vars(self, monkeypatch, tmp_path):
        _set_required(monkeypatch)
        cfg = load_config(env_path=str(tmp_path / "nonexistent.env"))
        assert cfg.rules_path == "rules/basic.json"

    def test_defaults(self, monkeypatch, tmp_path):
        _set_required(monkeypatch)
        cfg = load_config(env_path=str(tmp_path / "nonexistent.env"))
        assert cfg.log_level == "INFO"
        assert cfg.api_port == 8080
        assert cfg.parallel_calculators is False
        assert cfg.max_workers == 4
        assert cfg.signal_history_size == 50

    def test_overrides(self, monkeypatch, tmp_path):
        _set_required(monkeypatch)
        monkeypatch.setenv("PARALLEL_CALCULATORS", "True")
        monkeypatch.setenv("MAX_WORKERS", "8")
        monkeypatch.setenv("API_PORT", "9000")
        cfg = load_config(env_path=str(tmp_path / "nonexistent.env"))
        assert cfg.parallel_calculators is True
        assert cfg.max_workers == 8
        assert cfg.api_port == 9000

    def test_config_missing_var(self, tmp_path):
        # Non-existent env_path so load_dotenv doesn't re-populate from a real .env
        with pytest.raises(ValueError, match="STRATEGY_RULES_PATH"):
            load_config(env_path=str(tmp_path / "nonexistent.env"))

    def test_loads_from_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("STRATEGY_RULES_PATH=from_file.json\nLOG_LEVEL=DEBUG\n")
        cfg = load_config(env_path=str(env_file))
        assert cfg.rules_path == "from_file.json"
        assert cfg.log_level == "DEBUG"


class TestRuleFiles:
    def _config(self, path) -> Config:
        return Config(
            rules_path=str(path),
            log_level="INFO",
            api_port=8080,
            parallel_calculators=False,
            max_workers=4,
            signal_history_size=50,
        )

    def test_single_file(self, tmp_path):
        rule = tmp_path / "one.json"
        assert self._config(rule).rule_files == [rule]

    def test_directory_lists_sorted_json(self, tmp_path):
        (tmp_path / "b.json").write_text("{}")
        (tmp_path / "a.json").write_text("{}")
        (tmp_path / "notes.txt").write_text("")
        files = self._config(tmp_path).rule_files
        assert [f.name for f in files] == ["a.json", "b.json"]
