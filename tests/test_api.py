import pytest
from fastapi.testclient import TestClient

from autoclaw import main
from autoclaw.errors import ChainTimeout
from autoclaw.ledger import FundingMonitor, PositionLedger, TimelineLogger
from autoclaw.tokens import USDM_ADDRESS
from autoclaw.trading import QuoteEngine, RouteResolver
from conftest import SERVER_WALLET, WALLET


@pytest.fixture
def client(monkeypatch, chain, store):
    services = main.Services(
        chain_client=chain,
        quote_engine=QuoteEngine(chain, RouteResolver(chain)),
        store=store,
        ledger=PositionLedger(store),
        funding_monitor=FundingMonitor(store, chain, TimelineLogger(store))
    )
    monkeypatch.setattr(main, "services", services)
    with TestClient(main.app) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["execution_enabled"] is False


def test_quote(client):
    response = client.post("/api/quote", json={"token_in": "USDm", "token_out": "KESm", "amount": 2})
    assert response.status_code == 200
    body = response.json()
    assert body["amount_out"] == str(2 * 10 ** 18 * 129)
    assert body["amount_out_human"] == pytest.approx(258)
    assert body["rate"] == pytest.approx(129)
    assert len(body["route"]) == 1


def test_quote_unknown_token(client):
    response = client.post("/api/quote", json={"token_in": "DOGE", "token_out": "USDm", "amount": 1})
    assert response.status_code == 400


def test_quote_without_route_is_404(client):
    response = client.post("/api/quote", json={"token_in": "KESm", "token_out": "BRLm", "amount": 1})
    assert response.status_code == 404
    assert "No exchange route found" in response.json()["detail"]


def test_quote_rpc_failure_is_503(client, chain):
    chain.quote_error = ChainTimeout("getAmountOut timed out")
    response = client.post("/api/quote", json={"token_in": "USDm", "token_out": "EURm", "amount": 1})
    assert response.status_code == 503


def test_yield_guardrail_check(client):
    signal = {"vault_address": "0xvault", "action": "deposit", "amount_usd": 100, "estimated_apr": 12}
    response = client.post("/api/guardrails/yield/check", json={"signal": signal, "portfolio_value": 1000})
    assert response.status_code == 200
    assert response.json()["passed"] is True

    signal["estimated_apr"] = 2
    response = client.post("/api/guardrails/yield/check", json={
        "signal": signal, "portfolio_value": 1000, "risk_profile": "conservative"
    })
    assert response.status_code == 422
    assert response.json()["detail"] == {"rule_name": "min_apr_threshold", "reason": "APR 2.0% is below minimum 8%"}


def test_positions(client, store):
    store.upsert_position(WALLET, "EURm", "0x1", 95.0, 100 / 95)
    store.upsert_position(WALLET, "KESm", "0x2", 0.0, 0.01)
    response = client.get(f"/api/positions/{WALLET}")
    assert response.status_code == 200
    body = response.json()
    assert [p["token_symbol"] for p in body["positions"]] == ["EURm"]
    assert body["portfolio_value"] == pytest.approx(95)


def test_funding_poll(client, chain, store):
    store.add_agent_config(WALLET, server_wallet_address=SERVER_WALLET)
    assert client.post("/api/funding/poll").json()["events"] == []

    chain.balances[(USDM_ADDRESS.lower(), SERVER_WALLET.lower())] = 3 * 10 ** 18
    body = client.post("/api/funding/poll").json()
    assert body["events"][0]["token"] == "USDm"
    assert body["events"][0]["raw_amount"] == str(3 * 10 ** 18)
    assert body["wallets_checked"] == 1
