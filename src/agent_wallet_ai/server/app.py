"""FastAPI server exposing the wallet chat agent over HTTP."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse
from web3 import Web3

from agent_wallet_ai.config import AppConfig, _is_unresolved, get_wallets_path
from agent_wallet_ai.core.agent import WalletAgent
from agent_wallet_ai.core.sessions import DEFAULT_SESSION, SessionManager
from agent_wallet_ai.errors import (
    AgentNotInitialized,
    ConfigError,
    InvalidPrivateKey,
    WalletAgentError,
    WalletNotFound,
)
from agent_wallet_ai.wallet.chains import get_chain
from agent_wallet_ai.wallet.keystore import WalletStore, address_from_key
from agent_wallet_ai.wallet.provider import Web3Provider

logger = logging.getLogger("agent_wallet_ai.server")

ENV_WALLET_ID = "env"

_STATUS_CODES: dict[type[WalletAgentError], int] = {
    AgentNotInitialized: 400,
    ConfigError: 400,
    InvalidPrivateKey: 400,
    WalletNotFound: 404,
}


def _error(message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code)


def create_app(
    config: AppConfig,
    sessions: SessionManager | None = None,
    store: WalletStore | None = None,
    *,
    config_path: Path | None = None,
    chain_provider: Web3Provider | None = None,
) -> FastAPI:
    """Build the app.

    Saved wallets are read from next to ``config_path``, the same file the
    CLI uses.  Tests pass their own sessions, store and chain provider.
    """
    app = FastAPI(title="Agent Wallet AI")
    sessions = sessions or SessionManager(config)
    store = store or WalletStore(get_wallets_path(config, config_path))
    app.state.sessions = sessions
    app.state.store = store

    llm_provider = config.llm.default_provider
    reader = chain_provider

    def _chain() -> Web3Provider:
        nonlocal reader
        if reader is None:
            reader = Web3Provider(get_chain(config.network.network_id), config.network.rpc_url)
        return reader

    @app.exception_handler(WalletAgentError)
    async def _wallet_agent_error(request: Request, exc: WalletAgentError):
        return _error(str(exc), _STATUS_CODES.get(type(exc), 500))

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception):
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return _error(str(exc), 500)

    async def _ensure_initialized(session_id: str) -> WalletAgent:
        agent = sessions.get(session_id)
        if agent is None:
            await sessions.create(session_id)
            agent = sessions.get(session_id)
        return agent

    def _connected(session_id: str) -> WalletAgent:
        agent = sessions.get(session_id)
        if agent is None:
            raise AgentNotInitialized("Agent not initialized")
        return agent

    # ------------------------------------------------------------------
    # Agent routes
    # ------------------------------------------------------------------

    @app.get("/api/health")
    async def api_health():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.post("/api/initialize")
    async def api_initialize(x_session_id: str = Header(DEFAULT_SESSION)):
        async with sessions.locked(x_session_id):
            info = await sessions.create(x_session_id)
        return {"success": True, "wallet": info.to_dict(), "llmProvider": llm_provider}

    @app.get("/api/status")
    async def api_status(x_session_id: str = Header(DEFAULT_SESSION)):
        agent = sessions.get(x_session_id)
        if agent is None:
            return {"initialized": False}
        return {**agent.status(), "llmProvider": llm_provider}

    @app.post("/api/chat")
    async def api_chat(body: dict, x_session_id: str = Header(DEFAULT_SESSION)):
        message = body.get("message")
        if not message or not isinstance(message, str):
            return _error("Message is required")
        async with sessions.locked(x_session_id):
            agent = await _ensure_initialized(x_session_id)
            response = await agent.submit_user_message(message)
        return {"success": True, **response.to_dict()}

    @app.post("/api/confirm")
    async def api_confirm(x_session_id: str = Header(DEFAULT_SESSION)):
        _connected(x_session_id)
        async with sessions.locked(x_session_id):
            agent = _connected(x_session_id)
            if not agent.has_pending_transaction():
                return _error("No pending transaction")
            response = await agent.confirm_pending_transaction()
            info = await agent.refresh_wallet_info()
        return {"success": True, **response.to_dict(), "wallet": info.to_dict()}

    @app.post("/api/cancel")
    async def api_cancel(x_session_id: str = Header(DEFAULT_SESSION)):
        _connected(x_session_id)
        async with sessions.locked(x_session_id):
            response = await _connected(x_session_id).cancel_pending_transaction()
        return {"success": True, "message": response.message}

    @app.post("/api/clear")
    async def api_clear(x_session_id: str = Header(DEFAULT_SESSION)):
        _connected(x_session_id)
        async with sessions.locked(x_session_id):
            _connected(x_session_id).clear_history()
        return {"success": True}

    @app.delete("/api/session")
    async def api_end_session(x_session_id: str = Header(DEFAULT_SESSION)):
        if not sessions.drop(x_session_id):
            return _error("Session not found", 404)
        return {"success": True}

    @app.get("/api/wallet/refresh")
    async def api_wallet_refresh(x_session_id: str = Header(DEFAULT_SESSION)):
        _connected(x_session_id)
        async with sessions.locked(x_session_id):
            info = await _connected(x_session_id).refresh_wallet_info()
        return {"success": True, "wallet": info.to_dict(), "llmProvider": llm_provider}

    # ------------------------------------------------------------------
    # Browser (client) wallet
    # ------------------------------------------------------------------

    @app.get("/api/client_wallet")
    async def api_get_client_wallet(x_session_id: str = Header(DEFAULT_SESSION)):
        agent = sessions.get(x_session_id)
        return {"success": True, "clientWallet": agent.client_address if agent else None}

    @app.post("/api/client_wallet")
    async def api_set_client_wallet(body: dict, x_session_id: str = Header(DEFAULT_SESSION)):
        address = body.get("address")
        if not address or not isinstance(address, str):
            return _error("Address is required")
        agent = _connected(x_session_id)
        try:
            client_wallet = agent.set_client_address(address)
        except ValueError as exc:
            return _error(str(exc))
        return {"success": True, "clientWallet": client_wallet}

    @app.delete("/api/client_wallet")
    async def api_clear_client_wallet(x_session_id: str = Header(DEFAULT_SESSION)):
        agent = sessions.get(x_session_id)
        if agent is not None:
            agent.set_client_address(None)
        return {"success": True}

    # ------------------------------------------------------------------
    # Token reads
    # ------------------------------------------------------------------

    def _invalid_addresses(*addresses: str) -> str | None:
        bad = [a for a in addresses if not Web3.is_address(a)]
        return f"Invalid address: {bad[0]}" if bad else None

    @app.get("/api/token/details")
    async def api_token_details(tokenAddress: str = ""):
        if not tokenAddress:
            return _error("tokenAddress is required")
        problem = _invalid_addresses(tokenAddress)
        if problem:
            return _error(problem)
        token = await asyncio.to_thread(_chain().erc20_details, tokenAddress)
        return {"success": True, "token": token}

    @app.get("/api/token/balance")
    async def api_token_balance(
        tokenAddress: str = "",
        address: str = "",
        x_session_id: str = Header(DEFAULT_SESSION),
    ):
        agent = sessions.get(x_session_id)
        owner = address or (agent.address if agent else "")
        if not tokenAddress or not owner:
            return _error("tokenAddress and address are required")
        problem = _invalid_addresses(tokenAddress, owner)
        if problem:
            return _error(problem)
        result = await asyncio.to_thread(_chain().erc20_balance, tokenAddress, owner)
        return {"success": True, "balance": result["balance"]}

    @app.get("/api/token/allowance")
    async def api_token_allowance(
        tokenAddress: str = "",
        spenderAddress: str = "",
        ownerAddress: str = "",
        x_session_id: str = Header(DEFAULT_SESSION),
    ):
        agent = sessions.get(x_session_id)
        owner = ownerAddress or (agent.address if agent else "")
        if not tokenAddress or not spenderAddress or not owner:
            return _error("tokenAddress, spenderAddress, ownerAddress are required")
        problem = _invalid_addresses(tokenAddress, spenderAddress, owner)
        if problem:
            return _error(problem)
        result = await asyncio.to_thread(
            _chain().erc20_allowance, tokenAddress, owner, spenderAddress
        )
        return {"success": True, **result}

    # ------------------------------------------------------------------
    # Saved wallets
    # ------------------------------------------------------------------

    @app.get("/api/wallets")
    async def api_wallets():
        wallets = store.list_wallets()
        env_key = config.wallet.private_key
        if not _is_unresolved(env_key):
            try:
                wallets.insert(
                    0,
                    {"id": ENV_WALLET_ID, "alias": "Environment Wallet", "address": address_from_key(env_key)},
                )
            except InvalidPrivateKey:
                logger.warning("Configured private key could not be parsed")
        return {"success": True, "wallets": wallets}

    @app.post("/api/wallets")
    async def api_create_wallet(body: dict):
        alias = body.get("alias")
        if not alias:
            return _error("Alias is required")
        private_key = body.get("privateKey")
        if private_key:
            wallet = store.import_wallet(alias, private_key)
        else:
            wallet = store.create_wallet(alias)
        public = {k: v for k, v in wallet.items() if k != "private_key"}
        return {"success": True, "wallet": public}

    @app.post("/api/wallets/switch")
    async def api_switch_wallet(body: dict, x_session_id: str = Header(DEFAULT_SESSION)):
        wallet_id = body.get("id")
        if not wallet_id:
            return _error("Wallet ID is required")
        if wallet_id == ENV_WALLET_ID:
            if _is_unresolved(config.wallet.private_key):
                return _error("Environment private key not found")
            private_key = config.wallet.private_key
        else:
            private_key = store.get_wallet(wallet_id)["private_key"]

        async with sessions.locked(x_session_id):
            info = await sessions.create(x_session_id, private_key)
        return {"success": True, "wallet": info.to_dict(), "llmProvider": llm_provider}

    @app.delete("/api/wallets/{wallet_id}")
    async def api_delete_wallet(wallet_id: str):
        if wallet_id == ENV_WALLET_ID:
            return _error("Cannot delete environment wallet", 403)
        if not store.delete_wallet(wallet_id):
            return _error(f"Wallet {wallet_id} not found.", 404)
        return {"success": True}

    return app


# ------------------------------------------------------------------
# Runner
# ------------------------------------------------------------------


def run_server(
    config: AppConfig,
    host: str | None = None,
    port: int | None = None,
    config_path: Path | None = None,
) -> None:
    app = create_app(config, config_path=config_path)
    host = host or config.server.host
    port = port or config.server.port
    logger.info(f"Serving on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="info")
