"""Keeps a conversation bounded by condensing its older turns."""

from __future__ import annotations

import logging

from agent_wallet_ai.config import AgentSettings
from agent_wallet_ai.core.conversation import SYSTEM, USER, ConversationState, Message
from agent_wallet_ai.core.prompts import SUMMARY_REQUEST, SUMMARY_SYSTEM_PROMPT
from agent_wallet_ai.llm.base import BaseLLMProvider, LLMMessage

logger = logging.getLogger("agent_wallet_ai.core.summarizer")

SUMMARY_PREFIX = "Conversation summary:\n"
MAX_SUMMARY_LINES = 8


class ConversationSummarizer:
    """Replaces the middle of a long history with a short system note.

    Layout after summarizing: ``[system, summary, *tail]``.  If the model
    call fails the middle is simply dropped: ``[system, *tail]``.
    """

    def __init__(self, provider: BaseLLMProvider, settings: AgentSettings):
        self.provider = provider
        self.trigger = settings.effective_summary_trigger
        self.keep = settings.effective_summary_keep
        self.min_messages = settings.summary_min_messages

    def should_summarize(self, state: ConversationState) -> bool:
        return len(state) > self.trigger

    async def maybe_summarize(self, state: ConversationState) -> bool:
        """Summarize ``state`` in place if it is over the trigger.

        Returns ``True`` when the history was rewritten (either way).
        """
        if not self.should_summarize(state):
            return False

        head = state.system_message
        tail = state.messages[-self.keep:]
        middle = state.messages[1:-self.keep]
        if len(middle) < self.min_messages:
            return False

        try:
            summary = await self._summarize(middle)
        except Exception as exc:
            logger.warning(f"Failed to summarize history, trimming instead: {exc}")
            state.replace_history([head, *tail])
            return True

        state.replace_history([head, Message(SYSTEM, SUMMARY_PREFIX + summary), *tail])
        logger.info(f"Summarized {len(middle)} messages; history is now {len(state)} messages")
        return True

    async def _summarize(self, middle: list[Message]) -> str:
        request = [
            LLMMessage(role=SYSTEM, content=SUMMARY_SYSTEM_PROMPT),
            *(m.to_llm() for m in middle),
            LLMMessage(role=USER, content=SUMMARY_REQUEST),
        ]
        response = await self.provider.complete(request)
        text = (response.content or "").strip()
        if not text:
            raise ValueError("empty summary")
        lines = [line for line in text.splitlines() if line.strip()]
        return "\n".join(lines[:MAX_SUMMARY_LINES])
