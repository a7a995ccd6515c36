"""Agent Wallet AI - chat with an LLM that operates a single blockchain wallet."""

__version__ = "0.1.0"
