"""Conversation state owned by one chat session."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from agent_wallet_ai.llm.base import LLMMessage
from agent_wallet_ai.tools.registry import ToolCategory

SYSTEM = "system"
USER = "user"
ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """One turn.  ``synthetic`` marks assistant turns written by the agent
    itself to carry tool results or notes back to the model."""

    role: str
    content: str
    synthetic: bool = False

    def to_llm(self) -> LLMMessage:
        return LLMMessage(role=self.role, content=self.content)


@dataclass
class PendingTransaction:
    """A fund-moving invocation frozen until the user confirms or cancels."""

    operation_name: str
    arguments: dict[str, Any]
    human_description: str

    def to_dict(self) -> dict:
        return {
            "operationName": self.operation_name,
            "arguments": dict(self.arguments),
            "description": self.human_description,
        }


@dataclass
class ToolCallRecord:
    """Audit entry for one executed (or rejected) invocation."""

    name: str
    result: str
    category: Optional[ToolCategory] = field(default=None, compare=False)

    def to_dict(self) -> dict:
        return {"name": self.name, "result": self.result}


@dataclass
class ChatResponse:
    message: str
    tool_calls: Optional[list[ToolCallRecord]] = None
    pending_transaction: Optional[PendingTransaction] = None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"message": self.message}
        if self.tool_calls:
            data["toolCalls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.pending_transaction is not None:
            data["pendingTransaction"] = self.pending_transaction.to_dict()
        return data


@dataclass
class WalletInfo:
    address: str
    network: str
    balance: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"address": self.address, "network": self.network}
        if self.balance is not None:
            data["balance"] = self.balance
        return data


@dataclass
class ConversationState:
    """Ordered message history plus the single pending-transaction slot.

    Index 0 is always the original system instruction.
    """

    system_prompt: str
    messages: list[Message] = field(default_factory=list)
    pending: Optional[PendingTransaction] = None

    def __post_init__(self) -> None:
        if not self.messages:
            self.messages = [Message(SYSTEM, self.system_prompt)]

    @property
    def system_message(self) -> Message:
        return self.messages[0]

    def append(self, role: str, content: str, *, synthetic: bool = False) -> Message:
        message = Message(role, content, synthetic)
        self.messages.append(message)
        return message

    def reset(self) -> None:
        """Drop everything but the system instruction.  The pending slot
        is left alone."""
        self.messages = [Message(SYSTEM, self.system_prompt)]

    def replace_history(self, messages: list[Message]) -> None:
        if not messages or messages[0] != self.system_message:
            raise ValueError("History must start with the original system instruction")
        self.messages = list(messages)

    def to_llm_messages(self) -> list[LLMMessage]:
        return [m.to_llm() for m in self.messages]

    def __len__(self) -> int:
        return len(self.messages)
