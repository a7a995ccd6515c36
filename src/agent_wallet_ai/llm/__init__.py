"""LLM provider abstraction layer for Agent Wallet AI.

Provides a unified interface for Anthropic, OpenAI, and any
OpenAI-compatible endpoint through common data structures and a routing
layer.
"""

from agent_wallet_ai.llm.base import (
    BaseLLMProvider,
    LLMMessage,
    LLMResponse,
    ToolCall,
    ToolDefinition,
)
from agent_wallet_ai.llm.router import LLMRouter

__all__ = [
    "BaseLLMProvider",
    "LLMMessage",
    "LLMResponse",
    "LLMRouter",
    "ToolCall",
    "ToolDefinition",
]
