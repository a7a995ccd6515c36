"""Agent Wallet AI tools - registry and the wallet capability set."""

from agent_wallet_ai.tools.registry import Tool, ToolCategory, ToolRegistry  # noqa: F401
from agent_wallet_ai.tools.wallet_tools import build_wallet_registry  # noqa: F401
