"""Exception hierarchy for Agent Wallet AI."""

from __future__ import annotations


class WalletAgentError(Exception):
    """Base class for all package errors."""


class ConfigError(WalletAgentError):
    """Configuration is missing or invalid."""


class AgentNotInitialized(WalletAgentError):
    """A chat operation was attempted before a wallet was connected."""


class NoPendingTransaction(WalletAgentError):
    """Confirm or cancel was requested with nothing awaiting approval."""


class ToolExecutionError(WalletAgentError):
    """A wallet operation could not be resolved or failed to run."""


class WalletNotFound(WalletAgentError):
    """No saved wallet matches the requested id."""


class InvalidPrivateKey(WalletAgentError):
    """The supplied private key could not be parsed."""
