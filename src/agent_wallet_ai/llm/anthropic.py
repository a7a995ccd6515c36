"""Anthropic LLM provider using the ``anthropic`` SDK."""

from __future__ import annotations

import logging

from agent_wallet_ai.llm.base import (
    BaseLLMProvider,
    LLMMessage,
    LLMResponse,
    ToolCall,
    ToolDefinition,
)

logger = logging.getLogger(__name__)


class AnthropicProvider(BaseLLMProvider):
    """LLM provider backed by the Anthropic Messages API.

    Uses :class:`anthropic.AsyncAnthropic` for all network calls so that the
    provider can be used inside ``asyncio`` event loops without blocking.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        max_tokens: int = 4096,
        temperature: float | None = None,
    ):
        super().__init__(
            api_key=api_key,
            model=model,
            base_url=base_url,
            max_tokens=max_tokens,
            temperature=temperature,
        )

        try:
            import anthropic
        except ImportError as exc:
            raise ImportError(
                "The 'anthropic' package is required for the Anthropic provider. "
                "Install it with: pip install anthropic"
            ) from exc

        client_kwargs: dict = {"api_key": self.api_key}
        if self.base_url:
            client_kwargs["base_url"] = self.base_url

        self._client = anthropic.AsyncAnthropic(**client_kwargs)

    # ------------------------------------------------------------------
    # Format conversion helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _extract_system(messages: list[LLMMessage]) -> tuple[str | None, list[LLMMessage]]:
        """Separate the system prompt from the rest of the messages.

        Anthropic expects the system prompt as a top-level parameter.  A
        conversation summary is also a system message, so all of them are
        concatenated in order.
        """
        system_parts: list[str] = []
        non_system: list[LLMMessage] = []
        for msg in messages:
            if msg.role == "system":
                system_parts.append(msg.content)
            else:
                non_system.append(msg)
        system_text = "\n\n".join(system_parts) if system_parts else None
        return system_text, non_system

    @staticmethod
    def _convert_messages(messages: list[LLMMessage]) -> list[dict]:
        """Convert to Anthropic's alternating user/assistant format.

        Consecutive turns of the same role are merged, and a trimmed history
        that starts with an assistant turn gets a short leading user turn.
        """
        converted: list[dict] = []
        for msg in messages:
            if converted and converted[-1]["role"] == msg.role:
                converted[-1]["content"] += "\n\n" + msg.content
            else:
                converted.append({"role": msg.role, "content": msg.content})
        if converted and converted[0]["role"] != "user":
            converted.insert(0, {"role": "user", "content": "(continuing conversation)"})
        return converted

    @staticmethod
    def _convert_tools(tools: list[ToolDefinition]) -> list[dict]:
        """Convert tool definitions to Anthropic's expected schema."""
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.parameters,
            }
            for tool in tools
        ]

    @staticmethod
    def _parse_response(response) -> LLMResponse:
        """Parse an Anthropic ``Message`` object into our unified format."""
        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []

        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCall(
                        id=block.id,
                        name=block.name,
                        arguments=block.input if isinstance(block.input, dict) else {},
                    )
                )

        usage = None
        if response.usage:
            usage = {
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            }

        return LLMResponse(
            content="\n".join(text_parts),
            tool_calls=tool_calls if tool_calls else None,
            usage=usage,
            stop_reason=response.stop_reason,
        )

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    async def complete(
        self,
        messages: list[LLMMessage],
        tools: list[ToolDefinition] | None = None,
    ) -> LLMResponse:
        """Send a completion request to the Anthropic Messages API."""
        system_text, non_system_messages = self._extract_system(messages)

        kwargs: dict = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": self._convert_messages(non_system_messages),
        }
        if system_text:
            kwargs["system"] = system_text
        if self.temperature is not None:
            # Anthropic caps temperature at 1.0
            kwargs["temperature"] = min(self.temperature, 1.0)
        if tools:
            kwargs["tools"] = self._convert_tools(tools)

        try:
            response = await self._client.messages.create(**kwargs)
        except Exception as exc:
            logger.error("Anthropic API call failed: %s", exc)
            raise

        return self._parse_response(response)
