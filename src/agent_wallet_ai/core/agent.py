"""WalletAgent - the chat orchestrator for one connected wallet."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from decimal import Decimal
from typing import Any, Callable

from agent_wallet_ai.config import AppConfig, _is_unresolved
from agent_wallet_ai.core.conversation import (
    ASSISTANT,
    SYSTEM,
    USER,
    ChatResponse,
    ConversationState,
    PendingTransaction,
    ToolCallRecord,
    WalletInfo,
)
from agent_wallet_ai.core.formatting import (
    format_eth_balance,
    format_result,
    looks_like_raw_echo,
    synthesize_fallback,
    tool_results_text,
)
from agent_wallet_ai.core.prompts import (
    ERROR_EXPLAINER_SYSTEM,
    ERROR_EXPLAINER_TEMPLATE,
    build_system_prompt,
)
from agent_wallet_ai.core.summarizer import ConversationSummarizer
from agent_wallet_ai.core.transactions import build_transaction_description
from agent_wallet_ai.errors import AgentNotInitialized, ConfigError, NoPendingTransaction
from agent_wallet_ai.llm.base import BaseLLMProvider, LLMMessage, ToolCall
from agent_wallet_ai.tools.registry import ToolRegistry
from agent_wallet_ai.tools.wallet_tools import build_wallet_registry
from agent_wallet_ai.wallet.session import WalletSession

logger = logging.getLogger("agent_wallet_ai.agent")

NO_PENDING_MESSAGE = "There is no transaction awaiting confirmation."
NO_RESULT_MESSAGE = "I worked on your request but ran into a problem. Please try again."
UNCLEAR_MESSAGE = "I'm not sure how to help with that. Could you rephrase your request?"
ALREADY_PENDING_ERROR = (
    "Error: another transaction is already awaiting confirmation. "
    "Ask the user to confirm or cancel it first."
)

SessionFactory = Callable[[str], WalletSession]
RegistryFactory = Callable[[WalletSession], ToolRegistry]

_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


def _join(prefix: str, message: str) -> str:
    return f"{prefix}\n\n{message}" if prefix else message


class WalletAgent:
    """Drives the request / execute / confirm loop for one chat session.

    Every invocation the model requests is resolved against the session's
    :class:`ToolRegistry`.  Names listed in ``agent.confirm_tools`` are
    never executed directly: the first one in a round is frozen as the
    single pending transaction and the turn returns to the user.
    """

    def __init__(
        self,
        config: AppConfig,
        provider: BaseLLMProvider,
        *,
        session_factory: SessionFactory | None = None,
        registry_factory: RegistryFactory = build_wallet_registry,
    ):
        self.config = config
        self.settings = config.agent
        self.provider = provider
        self.state = ConversationState(build_system_prompt(config.network.network_id))
        self.summarizer = ConversationSummarizer(provider, self.settings)
        self.confirm_tools = frozenset(self.settings.confirm_tools)
        self.session: WalletSession | None = None
        self.registry: ToolRegistry | None = None
        self._session_factory = session_factory or (
            lambda key: WalletSession.from_private_key(key, config.network)
        )
        self._registry_factory = registry_factory

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def initialize(self, private_key: str | None = None) -> WalletInfo:
        """Connect a wallet.  Falls back to the configured private key.

        Raises
        ------
        ConfigError
            If no private key is given and none is configured.
        InvalidPrivateKey
            If the key cannot be parsed.
        """
        key = private_key or self.config.wallet.private_key
        if _is_unresolved(key):
            raise ConfigError("No private key provided and none found in the configuration")

        session = self._session_factory(key)
        self.session = session
        self.registry = self._registry_factory(session)
        logger.info(
            f"Wallet {session.address} connected on {session.network} "
            f"({len(self.registry)} tools)"
        )
        return await self.refresh_wallet_info()

    async def refresh_wallet_info(self) -> WalletInfo:
        network = self.config.network.network_id
        if self.session is None:
            return WalletInfo(address="", network=network)
        balance_wei = await asyncio.to_thread(self.session.get_balance_wei)
        return WalletInfo(
            address=self.session.address,
            network=self.session.network,
            balance=format_eth_balance(balance_wei),
        )

    @property
    def address(self) -> str:
        return self.session.address if self.session else ""

    @property
    def client_address(self) -> str | None:
        return getattr(self.session, "client_address", None)

    def set_client_address(self, address: str | None) -> str | None:
        """Record (or clear with ``None``) the browser wallet shown next to ours.

        Raises :class:`ValueError` for anything but a ``0x`` + 40 hex address.
        """
        session = self._require_session()
        if address is not None:
            address = address.strip()
            if not _ADDRESS_RE.match(address):
                raise ValueError(f"Invalid address: {address!r}")
        session.client_address = address
        logger.info(f"Client wallet set to {address}")
        return address

    @property
    def initialized(self) -> bool:
        return self.registry is not None

    @property
    def pending_transaction(self) -> PendingTransaction | None:
        return self.state.pending

    def has_pending_transaction(self) -> bool:
        return self.state.pending is not None

    def clear_history(self) -> None:
        """Reset to the system instruction.  A pending transaction survives."""
        self.state.reset()
        logger.info("Conversation history cleared")

    def _require_session(self) -> WalletSession:
        if self.session is None:
            raise AgentNotInitialized("Agent not initialized. Connect a wallet first.")
        return self.session

    def _require_registry(self) -> ToolRegistry:
        if self.registry is None:
            raise AgentNotInitialized("Agent not initialized. Connect a wallet first.")
        return self.registry

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def submit_user_message(self, text: str) -> ChatResponse:
        """Handle one user turn.

        Raises :class:`AgentNotInitialized` before a wallet is connected;
        every other failure is turned into a reply.
        """
        self._require_registry()
        self.state.append(USER, text)
        try:
            await self.summarizer.maybe_summarize(self.state)
            return await self._run_loop()
        except Exception as exc:
            logger.error(f"Chat turn failed: {exc}")
            return await self._explain_failure(exc, text)

    chat = submit_user_message

    async def _run_loop(
        self,
        prefix: str = "",
        initial_records: list[ToolCallRecord] | None = None,
    ) -> ChatResponse:
        registry = self._require_registry()
        records: list[ToolCallRecord] = list(initial_records or [])

        for iteration in range(self.settings.max_iterations):
            response = await self.provider.complete(
                self.state.to_llm_messages(), tools=registry.definitions()
            )

            if not response.tool_calls:
                final = self._choose_final(response.content or "", records, response.needs_synthesis)
                self.state.append(ASSISTANT, final)
                return ChatResponse(message=_join(prefix, final), tool_calls=records or None)

            round_records, pending = await self._process_round(response.tool_calls, records)
            if pending is not None:
                message = (
                    "⚠️ This transaction needs your confirmation:\n\n"
                    f"{pending.human_description}\n\n"
                    "Please confirm or cancel it."
                )
                return ChatResponse(
                    message=_join(prefix, message),
                    tool_calls=records or None,
                    pending_transaction=pending,
                )
            self.state.append(ASSISTANT, tool_results_text(round_records), synthetic=True)

        logger.warning(f"Iteration limit ({self.settings.max_iterations}) reached without a final answer")
        final = synthesize_fallback(records) if records else NO_RESULT_MESSAGE
        self.state.append(ASSISTANT, final, synthetic=True)
        return ChatResponse(message=_join(prefix, final), tool_calls=records or None)

    def _choose_final(
        self,
        content: str,
        records: list[ToolCallRecord],
        needs_synthesis: bool | None,
    ) -> str:
        if needs_synthesis is None:
            needs_synthesis = looks_like_raw_echo(
                content, records, self.settings.echo_length_threshold
            )
        if needs_synthesis and records:
            logger.info("Model reply echoed raw tool output; using template reply")
            return synthesize_fallback(records)
        return content if content.strip() else UNCLEAR_MESSAGE

    async def _process_round(
        self,
        calls: list[ToolCall],
        records: list[ToolCallRecord],
    ) -> tuple[list[ToolCallRecord], PendingTransaction | None]:
        """Execute one round of requested invocations in order.

        The whole round is inspected first.  When nothing is pending, the
        first fund-moving call is frozen; calls before it still run, calls
        after it are deferred and noted in the conversation.
        """
        registry = self._require_registry()
        freeze_at = None
        if self.state.pending is None:
            freeze_at = next(
                (i for i, c in enumerate(calls) if c.name in self.confirm_tools and c.name in registry),
                None,
            )

        round_records: list[ToolCallRecord] = []
        for index, call in enumerate(calls):
            if index == freeze_at:
                pending = await self._freeze(call, round_records, calls[index + 1:])
                return round_records, pending

            tool = registry.get_tool(call.name)
            if tool is None:
                logger.warning(f"Model requested unknown tool '{call.name}'")
                record = ToolCallRecord(
                    call.name,
                    f"Error: Unknown tool '{call.name}'. Available tools: "
                    f"{', '.join(registry.list_names())}",
                )
            elif call.name in self.confirm_tools:
                logger.warning(f"Rejected {call.name}: a transaction is already pending")
                record = ToolCallRecord(call.name, ALREADY_PENDING_ERROR, tool.category)
            else:
                record = await self._execute(call, tool.category)

            round_records.append(record)
            records.append(record)

        return round_records, None

    async def _execute(self, call: ToolCall, category) -> ToolCallRecord:
        logger.info(f"Invoking tool {call.name} with args {call.arguments}")
        try:
            raw = await self._require_registry().invoke(call.name, call.arguments)
        except Exception as exc:
            logger.error(f"Tool {call.name} failed: {exc}")
            return ToolCallRecord(call.name, f"Error: {exc}", category)
        result = format_result(call.name, raw, category)
        logger.debug(f"Tool {call.name} returned: {result}")
        return ToolCallRecord(call.name, result, category)

    async def _freeze(
        self,
        call: ToolCall,
        executed: list[ToolCallRecord],
        deferred: list[ToolCall],
    ) -> PendingTransaction:
        description = await build_transaction_description(
            call.name, call.arguments, self._fetch_balance
        )
        pending = PendingTransaction(
            operation_name=call.name,
            arguments=dict(call.arguments),
            human_description=description,
        )
        self.state.pending = pending
        logger.info(f"Awaiting confirmation for {call.name} {call.arguments}")

        if executed:
            self.state.append(ASSISTANT, tool_results_text(executed), synthetic=True)
        note = f"Awaiting user confirmation for {call.name} {json.dumps(call.arguments, default=str)}."
        if deferred:
            names = ", ".join(c.name for c in deferred)
            note += f" Not yet executed, request again after confirmation: {names}."
        self.state.append(ASSISTANT, note, synthetic=True)
        return pending

    async def _fetch_balance(self) -> Decimal | None:
        if self.session is None:
            return None
        balance_wei = await asyncio.to_thread(self.session.get_balance_wei)
        return Decimal(int(balance_wei)) / Decimal(10) ** 18

    async def _explain_failure(self, exc: Exception, user_message: str) -> ChatResponse:
        context = self.state.to_llm_messages()
        if context and context[-1].role == USER:
            context = context[:-1]
        prompt = ERROR_EXPLAINER_TEMPLATE.format(error=exc, user_message=user_message)
        try:
            response = await self.provider.complete(
                [*context, LLMMessage(SYSTEM, ERROR_EXPLAINER_SYSTEM), LLMMessage(USER, prompt)]
            )
            message = response.content.strip() if response.content else ""
            if not message:
                message = f"I encountered an error: {exc}. Let me help you resolve this."
        except Exception as second:
            logger.error(f"Error explanation also failed: {second}")
            message = (
                f"I'm sorry, something went wrong: {exc}. "
                "Please try again or let me know if you need help!"
            )
        self.state.append(ASSISTANT, message)
        return ChatResponse(message=message)

    # ------------------------------------------------------------------
    # Confirmation
    # ------------------------------------------------------------------

    def _take_pending(self) -> PendingTransaction:
        pending = self.state.pending
        if pending is None:
            raise NoPendingTransaction(NO_PENDING_MESSAGE)
        self.state.pending = None
        return pending

    async def confirm_pending_transaction(self) -> ChatResponse:
        """Execute the frozen invocation, then let the model react to it."""
        registry = self._require_registry()
        try:
            pending = self._take_pending()
        except NoPendingTransaction as exc:
            return ChatResponse(message=str(exc))

        name, args = pending.operation_name, pending.arguments
        tool = registry.get_tool(name)
        if tool is None:
            return ChatResponse(message=f"Could not find the tool for this transaction ({name}).")

        logger.info(f"User confirmed {name} {args}")
        try:
            raw = await registry.invoke(name, args)
        except Exception as exc:
            logger.error(f"Confirmed transaction {name} failed: {exc}")
            self.state.append(ASSISTANT, f"Transaction {name} failed: {exc}", synthetic=True)
            return ChatResponse(message=f"❌ Transaction failed: {exc}")

        formatted = format_result(name, raw, tool.category)
        record = ToolCallRecord(name, formatted, tool.category)
        self.state.append(
            ASSISTANT, f"Transaction confirmed and executed. Result: {formatted}", synthetic=True
        )
        prefix = f"✅ Transaction confirmed and executed!\n\n{formatted}"
        try:
            return await self._run_loop(prefix=prefix, initial_records=[record])
        except Exception as exc:
            logger.error(f"Follow-up after confirmation failed: {exc}")
            return ChatResponse(
                message=_join(prefix, synthesize_fallback([record])),
                tool_calls=[record],
            )

    async def cancel_pending_transaction(self) -> ChatResponse:
        try:
            pending = self._take_pending()
        except NoPendingTransaction as exc:
            return ChatResponse(message=str(exc))
        logger.info(f"User cancelled {pending.operation_name}")
        self.state.append(ASSISTANT, "The user cancelled the transaction.", synthetic=True)
        return ChatResponse(
            message=f"❌ Transaction cancelled.\n\nCancelled transaction:\n{pending.human_description}"
        )

    def status(self) -> dict[str, Any]:
        return {
            "initialized": self.initialized,
            "address": self.address,
            "clientWallet": self.client_address,
            "network": self.config.network.network_id,
            "messages": len(self.state),
            "pendingTransaction": self.state.pending.to_dict() if self.state.pending else None,
        }
