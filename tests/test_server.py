import pytest
from fastapi.testclient import TestClient

from agent_wallet_ai.core.sessions import SessionManager
from agent_wallet_ai.server.app import create_app
from agent_wallet_ai.wallet.keystore import WalletStore, address_from_key

from conftest import RECIPIENT, TEST_PRIVATE_KEY, TX_HASH, WALLET_ADDRESS, call, text_response, tool_response


@pytest.fixture
def sessions(config, make_agent) -> SessionManager:
    return SessionManager(config, agent_factory=make_agent)


class FakeChain:
    """Token reads answered from fixed values."""

    def __init__(self):
        self.calls = []

    def erc20_details(self, token):
        self.calls.append(("details", token))
        return {"address": token, "name": "USD Coin", "symbol": "USDC", "decimals": 6}

    def erc20_balance(self, token, owner):
        self.calls.append(("balance", token, owner))
        return {"token": token, "symbol": "USDC", "balance": "12.5"}

    def erc20_allowance(self, token, owner, spender):
        self.calls.append(("allowance", token, owner, spender))
        return {"allowance": "100", "symbol": "USDC"}


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def client(config, sessions, chain, tmp_path):
    app = create_app(config, sessions, WalletStore(tmp_path / "wallets.json"), chain_provider=chain)
    with TestClient(app) as client:
        yield client


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_initialize_and_status(client):
    assert client.get("/api/status").json() == {"initialized": False}

    response = client.post("/api/initialize")
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["wallet"] == {"address": WALLET_ADDRESS, "network": "base-sepolia", "balance": "0.5000"}
    assert data["llmProvider"] == "openai"

    status = client.get("/api/status").json()
    assert status["initialized"] is True
    assert status["address"] == WALLET_ADDRESS
    assert status["pendingTransaction"] is None


def test_chat_requires_message(client):
    response = client.post("/api/chat", json={})
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Message is required"}


def test_chat_confirm_round_trip(client, provider, ledger):
    provider.script(tool_response(call("native_transfer", to=RECIPIENT, amount="0.1")))
    response = client.post("/api/chat", json={"message": "send 0.1 ETH"})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["pendingTransaction"]["operationName"] == "native_transfer"
    assert data["pendingTransaction"]["arguments"] == {"to": RECIPIENT, "amount": "0.1"}
    assert "toolCalls" not in data
    assert client.get("/api/status").json()["pendingTransaction"]["operationName"] == "native_transfer"

    provider.script(text_response("Sent!"))
    response = client.post("/api/confirm")

    data = response.json()
    assert data["success"] is True
    assert data["message"].startswith("✅ Transaction confirmed and executed")
    assert TX_HASH in data["message"]
    assert data["toolCalls"][0]["name"] == "native_transfer"
    assert data["wallet"]["address"] == WALLET_ADDRESS
    assert len(ledger.executed) == 1

    response = client.post("/api/confirm")
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "No pending transaction"}


def test_chat_cancel(client, provider, ledger):
    provider.script(tool_response(call("native_transfer", to=RECIPIENT, amount="0.1")))
    client.post("/api/chat", json={"message": "send"})

    response = client.post("/api/cancel")

    assert response.json()["success"] is True
    assert "cancelled" in response.json()["message"]
    assert ledger.executed == []
    assert client.get("/api/status").json()["pendingTransaction"] is None


def test_rejected_requests_keep_no_session_state(client, sessions):
    for i in range(20):
        response = client.post("/api/cancel", headers={"X-Session-Id": f"stranger-{i}"})
        assert response.status_code == 400
    assert client.get("/api/wallet/refresh", headers={"X-Session-Id": "stranger-x"}).status_code == 400

    assert len(sessions) == 0
    assert sessions._locks == {}


def test_end_session(client, sessions):
    client.post("/api/initialize", headers={"X-Session-Id": "alice"})
    assert "alice" in sessions

    assert client.delete("/api/session", headers={"X-Session-Id": "alice"}).json() == {"success": True}
    assert "alice" not in sessions
    assert sessions._locks == {}
    assert client.get("/api/status", headers={"X-Session-Id": "alice"}).json() == {"initialized": False}
    assert client.delete("/api/session", headers={"X-Session-Id": "alice"}).status_code == 404


def test_sessions_are_isolated(client, provider):
    provider.script(tool_response(call("native_transfer", to=RECIPIENT, amount="0.1")))
    client.post("/api/chat", json={"message": "send"}, headers={"X-Session-Id": "alice"})

    assert client.get("/api/status", headers={"X-Session-Id": "bob"}).json() == {"initialized": False}
    response = client.post("/api/cancel", headers={"X-Session-Id": "bob"})
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Agent not initialized"}

    alice = client.get("/api/status", headers={"X-Session-Id": "alice"}).json()
    assert alice["pendingTransaction"]["operationName"] == "native_transfer"


def test_clear(client, provider):
    provider.script(text_response("Hi!"))
    client.post("/api/chat", json={"message": "hello"})
    assert client.get("/api/status").json()["messages"] == 3

    assert client.post("/api/clear").json() == {"success": True}
    assert client.get("/api/status").json()["messages"] == 1


def test_wallet_refresh(client, session):
    assert client.get("/api/wallet/refresh").status_code == 400
    client.post("/api/initialize")
    session.balance_wei = 10**18
    assert client.get("/api/wallet/refresh").json()["wallet"]["balance"] == "1.0000"


def test_saved_wallets(client):
    wallets = client.get("/api/wallets").json()["wallets"]
    assert wallets == [
        {"id": "env", "alias": "Environment Wallet", "address": address_from_key(TEST_PRIVATE_KEY)}
    ]

    assert client.post("/api/wallets", json={}).status_code == 400
    created = client.post("/api/wallets", json={"alias": "main"}).json()["wallet"]
    assert created["alias"] == "main"
    assert "private_key" not in created
    assert [w["alias"] for w in client.get("/api/wallets").json()["wallets"]] == ["Environment Wallet", "main"]

    switched = client.post("/api/wallets/switch", json={"id": created["id"]}).json()
    assert switched["success"] is True
    assert client.get("/api/status").json()["initialized"] is True

    missing = client.post("/api/wallets/switch", json={"id": "nope"})
    assert missing.status_code == 404
    assert missing.json()["success"] is False

    assert client.delete(f"/api/wallets/{created['id']}").json() == {"success": True}
    assert client.delete(f"/api/wallets/{created['id']}").status_code == 404

    env_delete = client.delete("/api/wallets/env")
    assert env_delete.status_code == 403
    assert env_delete.json() == {"success": False, "error": "Cannot delete environment wallet"}


def test_client_wallet(client, provider):
    assert client.get("/api/client_wallet").json() == {"success": True, "clientWallet": None}
    assert client.post("/api/client_wallet", json={"address": RECIPIENT}).status_code == 400

    client.post("/api/initialize")
    assert client.post("/api/client_wallet", json={}).status_code == 400
    assert client.post("/api/client_wallet", json={"address": "0xnope"}).status_code == 400

    response = client.post("/api/client_wallet", json={"address": RECIPIENT})
    assert response.json() == {"success": True, "clientWallet": RECIPIENT}
    assert client.get("/api/status").json()["clientWallet"] == RECIPIENT

    provider.script(tool_response(call("get_wallet_address")), text_response(""))
    message = client.post("/api/chat", json={"message": "address?"}).json()["message"]
    assert RECIPIENT in message and WALLET_ADDRESS in message

    # switching the signing wallet keeps the browser wallet
    client.post("/api/wallets/switch", json={"id": "env"})
    assert client.get("/api/client_wallet").json()["clientWallet"] == RECIPIENT

    assert client.delete("/api/client_wallet").json() == {"success": True}
    assert client.get("/api/client_wallet").json()["clientWallet"] is None


def test_token_reads(client, chain):
    usdc = "0x036CbD53842c5426634e7929541eC2318f3dCF7e"

    details = client.get("/api/token/details", params={"tokenAddress": usdc}).json()
    assert details["token"]["symbol"] == "USDC"
    assert details["token"]["decimals"] == 6

    # owner defaults to the session's wallet once connected
    assert client.get("/api/token/balance", params={"tokenAddress": usdc}).status_code == 400
    client.post("/api/initialize")
    balance = client.get("/api/token/balance", params={"tokenAddress": usdc}).json()
    assert balance == {"success": True, "balance": "12.5"}
    assert chain.calls[-1] == ("balance", usdc, WALLET_ADDRESS)

    allowance = client.get(
        "/api/token/allowance", params={"tokenAddress": usdc, "spenderAddress": RECIPIENT}
    ).json()
    assert allowance == {"success": True, "allowance": "100", "symbol": "USDC"}
    assert chain.calls[-1] == ("allowance", usdc, WALLET_ADDRESS, RECIPIENT)


@pytest.mark.parametrize(
    "path, params",
    [
        ("/api/token/details", {}),
        ("/api/token/details", {"tokenAddress": "usdc"}),
        ("/api/token/allowance", {"tokenAddress": "0x036CbD53842c5426634e7929541eC2318f3dCF7e"}),
    ],
)
def test_token_reads_validate_input(client, chain, path, params):
    response = client.get(path, params=params)
    assert response.status_code == 400
    assert response.json()["success"] is False
    assert chain.calls == []


def test_default_store_sits_next_to_config_file(config, sessions, tmp_path):
    config_path = tmp_path / "elsewhere" / "config.yaml"
    app = create_app(config, sessions, config_path=config_path)
    assert app.state.store.path == tmp_path / "elsewhere" / "wallets.json"
