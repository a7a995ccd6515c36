"""HTTP adapter for the wallet chat agent."""

from agent_wallet_ai.server.app import create_app, run_server  # noqa: F401
