"""Core conversation engine: orchestration, summarization and formatting."""

from agent_wallet_ai.core.agent import WalletAgent  # noqa: F401
from agent_wallet_ai.core.conversation import (  # noqa: F401
    ChatResponse,
    ConversationState,
    PendingTransaction,
    ToolCallRecord,
    WalletInfo,
)
from agent_wallet_ai.core.sessions import SessionManager  # noqa: F401
