import pytest
from typer.testing import CliRunner

from agent_wallet_ai.cli.app import app
from agent_wallet_ai.config import load_config
from agent_wallet_ai.wallet.keystore import WalletStore

from conftest import TEST_PRIVATE_KEY

runner = CliRunner()


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    monkeypatch.delenv("AGENT_WALLET_CONFIG", raising=False)
    monkeypatch.delenv("PRIVATE_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    return tmp_path / "config.yaml"


def _invoke(config_path, *args, **kwargs):
    return runner.invoke(app, ["--config", str(config_path), *args], **kwargs)


def test_wallet_list_empty(config_path):
    result = _invoke(config_path, "wallet", "list")
    assert result.exit_code == 0
    assert "No wallets saved" in result.output


def test_wallet_create_then_list(config_path):
    result = _invoke(config_path, "wallet", "create", "main")
    assert result.exit_code == 0
    assert "Wallet created" in result.output

    wallets = WalletStore(config_path.parent / "wallets.json").list_wallets()
    assert [w["alias"] for w in wallets] == ["main"]

    result = _invoke(config_path, "wallet", "list")
    assert result.exit_code == 0
    assert "main" in result.output


def test_wallet_import_and_delete(config_path):
    result = _invoke(config_path, "wallet", "import", "hot", input=TEST_PRIVATE_KEY + "\n")
    assert result.exit_code == 0
    store = WalletStore(config_path.parent / "wallets.json")
    (wallet,) = store.list_wallets()

    result = _invoke(config_path, "wallet", "delete", wallet["id"], "--yes")
    assert result.exit_code == 0
    assert WalletStore(store.path).list_wallets() == []

    result = _invoke(config_path, "wallet", "delete", wallet["id"], "--yes")
    assert result.exit_code == 1


def test_wallet_import_rejects_bad_key(config_path):
    result = _invoke(config_path, "wallet", "import", "bad", input="0x1234\n")
    assert result.exit_code == 1
    assert "Invalid private key" in result.output


def test_init_writes_config(config_path):
    result = _invoke(config_path, "init", "--provider", "openai", "--api-key", "sk-test", "--network", "base")
    assert result.exit_code == 0, result.output

    config = load_config(config_path)
    assert config.llm.default_provider == "openai"
    assert config.llm.openai.api_key == "sk-test"
    assert config.llm.openai.model == "gpt-4o-mini"
    assert config.network.network_id == "base"
    assert config.wallet.private_key == "${PRIVATE_KEY}"

    result = _invoke(config_path, "init", "--provider", "openai")
    assert result.exit_code == 1


def test_init_rejects_unknown_network(config_path):
    result = _invoke(config_path, "init", "--provider", "openai", "--network", "mars")
    assert result.exit_code == 1
    assert not config_path.exists()


def test_chat_fails_fast_without_provider(config_path):
    result = _invoke(config_path, "chat")
    assert result.exit_code == 1
    assert "not configured" in result.output


def test_serve_uses_the_cli_wallet_store(config_path, monkeypatch):
    import agent_wallet_ai.server.app as server_app

    created = {}

    def fake_run_server(config, host=None, port=None, config_path=None):
        created["store"] = server_app.create_app(config, config_path=config_path).state.store

    monkeypatch.setattr(server_app, "run_server", fake_run_server)
    _invoke(config_path, "wallet", "create", "main")
    result = _invoke(config_path, "serve", "--port", "9999")

    assert result.exit_code == 0, result.output
    assert created["store"].path == config_path.parent / "wallets.json"
    assert [w["alias"] for w in created["store"].list_wallets()] == ["main"]
