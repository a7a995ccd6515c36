"""Common data structures and the abstract provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class LLMMessage:
    """A single chat message in provider-neutral form.

    Tool results are fed back as plain assistant text, so only the
    ``system`` / ``user`` / ``assistant`` roles are ever sent.
    """

    role: str
    content: str = ""


@dataclass
class ToolDefinition:
    """JSON-Schema description of a tool the model may call."""

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolCall:
    """A tool invocation requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class LLMResponse:
    """Unified completion result.

    ``needs_synthesis`` lets a provider state explicitly whether ``content``
    is a finished user-facing answer (``False``) or a placeholder the
    caller should replace (``True``).  ``None`` means the provider does not
    know, and the caller falls back to its own checks.
    """

    content: str = ""
    tool_calls: Optional[list[ToolCall]] = None
    usage: Optional[dict[str, int]] = None
    stop_reason: Optional[str] = None
    needs_synthesis: Optional[bool] = None


class BaseLLMProvider(ABC):
    """Base class every concrete provider implements."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        max_tokens: int = 4096,
        temperature: float | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.max_tokens = max_tokens
        self.temperature = temperature

    @abstractmethod
    async def complete(
        self,
        messages: list[LLMMessage],
        tools: list[ToolDefinition] | None = None,
    ) -> LLMResponse:
        """Send the conversation and return the model's answer."""
