from __future__ import annotations

from typing import Any

import pytest

from agent_wallet_ai.config import AppConfig
from agent_wallet_ai.core.agent import WalletAgent
from agent_wallet_ai.llm.base import BaseLLMProvider, LLMMessage, LLMResponse, ToolCall, ToolDefinition
from agent_wallet_ai.tools.registry import ToolCategory, ToolRegistry, make_tool

WALLET_ADDRESS = "0x71C7656EC7ab88b098defB751B7401B5f6d8976F"
RECIPIENT = "0x2546BcD3c84621e976D8185a91A922aE77ECEc30"
TX_HASH = "0x" + "ab" * 32
TEST_PRIVATE_KEY = "0x" + "11" * 32


class FakeProvider(BaseLLMProvider):
    """Replays scripted responses and records every request it receives.

    A scripted ``Exception`` is raised instead of returned.
    """

    def __init__(self, responses: list[LLMResponse | Exception] | None = None):
        super().__init__(api_key="test", model="fake")
        self.responses = list(responses or [])
        self.calls: list[tuple[list[LLMMessage], list[ToolDefinition] | None]] = []

    def script(self, *responses: LLMResponse | Exception) -> None:
        self.responses.extend(responses)

    async def complete(self, messages, tools=None):
        self.calls.append((list(messages), tools))
        if not self.responses:
            raise AssertionError("FakeProvider ran out of scripted responses")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FakeSession:
    address = WALLET_ADDRESS
    network = "base-sepolia"
    client_address = None

    def __init__(self, balance_wei: int = 5 * 10**17):
        self.balance_wei = balance_wei

    def get_balance_wei(self) -> int:
        return self.balance_wei


class Ledger:
    """Collects the fund-moving calls that actually executed."""

    def __init__(self):
        self.executed: list[tuple[str, dict[str, Any]]] = []


def call(name: str, **arguments: Any) -> ToolCall:
    return ToolCall(id=f"call_{name}", name=name, arguments=arguments)


def tool_response(*calls: ToolCall) -> LLMResponse:
    return LLMResponse(content="", tool_calls=list(calls))


def text_response(content: str) -> LLMResponse:
    return LLMResponse(content=content)


def build_test_registry(session: FakeSession, ledger: Ledger) -> ToolRegistry:
    def get_balance() -> dict:
        wei = session.get_balance_wei()
        return {"address": session.address, "balance": f"{wei / 10**18:.4f}", "balanceWei": str(wei)}

    def get_wallet_address() -> dict:
        result = {"address": session.address}
        if session.client_address:
            result["clientAddress"] = session.client_address
        return result

    def erc20_balance(tokenAddress: str) -> dict:
        raise RuntimeError("rpc down")

    async def native_transfer(to: str, amount: str) -> dict:
        ledger.executed.append(("native_transfer", {"to": to, "amount": amount}))
        return {"transactionHash": TX_HASH, "to": to, "amount": amount, "network": session.network}

    def erc20_transfer(tokenAddress: str, to: str, amount: str) -> dict:
        ledger.executed.append(("erc20_transfer", {"tokenAddress": tokenAddress, "to": to, "amount": amount}))
        return {"transactionHash": TX_HASH, "token": tokenAddress, "to": to, "amount": amount}

    return ToolRegistry(
        [
            make_tool("get_balance", "ETH balance", get_balance, ToolCategory.QUERY),
            make_tool("get_wallet_address", "Wallet address", get_wallet_address, ToolCategory.QUERY),
            make_tool("erc20_balance", "Token balance", erc20_balance, ToolCategory.QUERY),
            make_tool("native_transfer", "Send ETH", native_transfer, ToolCategory.TRANSFER),
            make_tool("erc20_transfer", "Send tokens", erc20_transfer, ToolCategory.TRANSFER),
        ]
    )


@pytest.fixture
def config() -> AppConfig:
    config = AppConfig()
    config.wallet.private_key = TEST_PRIVATE_KEY
    return config


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def ledger() -> Ledger:
    return Ledger()


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def make_agent(config, provider, session, ledger):
    def factory() -> WalletAgent:
        return WalletAgent(
            config,
            provider,
            session_factory=lambda key: session,
            registry_factory=lambda s: build_test_registry(s, ledger),
        )

    return factory


@pytest.fixture
async def agent(make_agent) -> WalletAgent:
    agent = make_agent()
    await agent.initialize()
    return agent
