"""Tests for the internal API routers."""

import json

import pytest
from fastapi.testclient import TestClient

from strategybuilder.api import routers
from strategybuilder.api.routers import configure_routers
from strategybuilder.engine.strategy_engine import build_engine
from strategybuilder.main import app


# ── Helpers ──────────────────────────────────────────────────────────────

client = TestClient(app)


def _sub_rule(op: str) -> dict:
    return {
        "Calculators": [
            {
                "Name": "SMA3",
                "CalculatorName": "SMA",
                "TechnicalIndicators": ["MOVINGAVERAGE"],
                "Parameters": [{"Name": "Period", "Value": "3"}],
            }
        ],
        "Conditions": [
            {
                "Indicator1": {
                    "CalculatorName": "SMA3",
                    "TechnicalIndicatorName": "MOVINGAVERAGE",
                },
                "Operator": op,
                "Value": "close",
            }
        ],
    }


def _write_rule(tmp_path, name: str = "ApiRule", **overrides) -> str:
    rule = {
        "Name": name,
        "CandleFrequency": "5m",
        "MinProfit": 0.5,
        "StopLoss": 0.2,
        "TakeProfit": 1.0,
        "Bankroll": {"MaxRiskPerTrade": 0.02, "MinEntryAmount": 10.0},
        "BuyRule": _sub_rule(">"),
        "SellRule": _sub_rule("<"),
    }
    rule.update(overrides)
    path = tmp_path / f"{name}.json"
    path.write_text(json.dumps({"Rule": rule}), encoding="utf-8")
    return str(path)


def _candle(close: float, start: int = 0) -> dict:
    return {
        "start": start,
        "open": close,
        "high": close + 1,
        "low": close - 1,
        "close": close,
        "volume": 5.0,
        "product_id": "ETH-USD",
    }


@pytest.fixture
def engine():
    engine = build_engine()
    configure_routers(engine, history_size=3)
    return engine


@pytest.fixture
def loaded(engine, tmp_path):
    resp = client.post("/strategies", json={"path": _write_rule(tmp_path)})
    assert resp.status_code == 200
    return engine


# ── Health ───────────────────────────────────────────────────────────────


class TestHealth:
    def test_health(self):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


# ── Strategies ───────────────────────────────────────────────────────────


class TestStrategies:
    def test_list_empty(self, engine):
        assert client.get("/strategies").json() == {"strategies": []}

    def test_load_and_list(self, engine, tmp_path):
        resp = client.post("/strategies", json={"path": _write_rule(tmp_path)})
        assert resp.status_code == 200
        assert resp.json() == {"registered": True, "strategies": ["ApiRule"]}
        assert client.get("/strategies").json() == {"strategies": ["ApiRule"]}

    def test_load_invalid_rule_not_registered(self, engine, tmp_path):
        resp = client.post(
            "/strategies", json={"path": _write_rule(tmp_path, StopLoss=0)}
        )
        assert resp.status_code == 200
        assert resp.json() == {"registered": False, "strategies": []}

    def test_load_requires_path(self, engine):
        assert client.post("/strategies", json={}).status_code == 400

    def test_load_missing_file(self, engine, tmp_path):
        resp = client.post("/strategies", json={"path": str(tmp_path / "nope.json")})
        assert resp.status_code == 404

    def test_load_malformed_file(self, engine, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{oops", encoding="utf-8")
        resp = client.post("/strategies", json={"path": str(path)})
        assert resp.status_code == 400
        assert "Error parsing JSON" in resp.json()["detail"]

    def test_load_non_object_parameter(self, engine, tmp_path):
        buy_rule = _sub_rule(">")
        buy_rule["Calculators"][0]["Parameters"] = ["Period=3"]
        resp = client.post(
            "/strategies", json={"path": _write_rule(tmp_path, BuyRule=buy_rule)}
        )
        assert resp.status_code == 400
        assert "must be a JSON object" in resp.json()["detail"]

    def test_get_strategy(self, loaded):
        resp = client.get("/strategies/ApiRule")
        assert resp.status_code == 200
        rule = resp.json()["Rule"]
        assert rule["Name"] == "ApiRule"
        assert rule["CandleFrequency"] == "5m"
        assert rule["BuyRule"]["Calculators"][0]["CalculatorName"] == "SMA"

    def test_get_unknown_strategy(self, engine):
        assert client.get("/strategies/Missing").status_code == 404

    def test_not_configured(self, monkeypatch):
        monkeypatch.setattr(routers, "_engine", None)
        assert client.get("/strategies").status_code == 503


# ── Indicators & evaluation ──────────────────────────────────────────────


class TestIndicators:
    def test_snapshot(self, loaded):
        candles = [_candle(c, i * 60_000) for i, c in enumerate([10, 9, 8, 7, 6])]
        resp = client.post("/indicators", json={"candles": candles})
        assert resp.status_code == 200
        assert resp.json()["indicators"] == pytest.approx({"SMA3": 7.0})

    def test_no_candles(self, loaded):
        resp = client.post("/indicators", json={})
        assert resp.json() == {"indicators": {}}

    def test_bad_candle(self, loaded):
        resp = client.post("/indicators", json={"candles": [{"open": 1.0}]})
        assert resp.status_code == 422


class TestEvaluate:
    def test_signal_recorded(self, loaded):
        resp = client.post(
            "/strategies/ApiRule/evaluate",
            json={"candle": _candle(6.0), "indicators": {"SMA3": 7.0}},
        )
        assert resp.status_code == 200
        assert resp.json() == {"strategy": "ApiRule", "signal": True}

        signals = client.get("/signals/history").json()["signals"]
        assert len(signals) == 1
        assert signals[0]["strategy_name"] == "ApiRule"
        assert signals[0]["product_id"] == "ETH-USD"
        assert signals[0]["is_buy"] is True
        assert signals[0]["price"] == 6.0

    def test_no_signal(self, loaded):
        resp = client.post(
            "/strategies/ApiRule/evaluate",
            json={"candle": _candle(7.0), "indicators": {"SMA3": 7.0}},
        )
        assert resp.json()["signal"] is False
        assert client.get("/signals/history").json() == {"signals": []}

    def test_unknown_strategy(self, loaded):
        resp = client.post(
            "/strategies/Other/evaluate",
            json={"candle": _candle(6.0), "indicators": {"SMA3": 7.0}},
        )
        assert resp.status_code == 200
        assert resp.json()["signal"] is False

    def test_candle_required(self, loaded):
        resp = client.post("/strategies/ApiRule/evaluate", json={"indicators": {}})
        assert resp.status_code == 400

    def test_history_capped(self, loaded):
        for _ in range(5):
            client.post(
                "/strategies/ApiRule/evaluate",
                json={"candle": _candle(6.0), "indicators": {"SMA3": 7.0}},
            )
        assert len(client.get("/signals/history").json()["signals"]) == 3
        assert len(client.get("/signals/history?limit=2").json()["signals"]) == 2

    def test_history_limit_validated(self, loaded):
        assert client.get("/signals/history?limit=0").status_code == 422

    def test_non_numeric_indicator(self, loaded):
        resp = client.post(
            "/strategies/ApiRule/evaluate",
            json={"candle": _candle(6.0), "indicators": {"SMA3": "high"}},
        )
        assert resp.status_code == 422

    def test_reconfigure_records_once(self, loaded):
        configure_routers(loaded, history_size=3)
        client.post(
            "/strategies/ApiRule/evaluate",
            json={"candle": _candle(6.0), "indicators": {"SMA3": 7.0}},
        )
        assert len(client.get("/signals/history").json()["signals"]) == 1
