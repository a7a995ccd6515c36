"""Per-session agents for the HTTP server."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable

from agent_wallet_ai.config import AppConfig
from agent_wallet_ai.core.agent import WalletAgent
from agent_wallet_ai.core.conversation import WalletInfo
from agent_wallet_ai.llm.router import LLMRouter

logger = logging.getLogger("agent_wallet_ai.sessions")

DEFAULT_SESSION = "default"

AgentFactory = Callable[[], WalletAgent]


@dataclass
class _SessionLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class SessionManager:
    """Maps a session id to its own :class:`WalletAgent`.

    Sessions share nothing but the provider client.  Only connected
    sessions are stored; a lock lives as long as the session or while a
    request holds or waits on it.
    """

    def __init__(self, config: AppConfig, agent_factory: AgentFactory | None = None):
        self.config = config
        self._router = LLMRouter(config.llm)
        self._agent_factory = agent_factory or self._default_agent
        self._agents: dict[str, WalletAgent] = {}
        self._locks: dict[str, _SessionLock] = {}

    def _default_agent(self) -> WalletAgent:
        return WalletAgent(self.config, self._router.get_provider())

    def get(self, session_id: str = DEFAULT_SESSION) -> WalletAgent | None:
        """The session's connected agent, or ``None``."""
        return self._agents.get(session_id)

    async def create(self, session_id: str, private_key: str | None = None) -> WalletInfo:
        """Start a fresh agent for ``session_id`` connected to ``private_key``.

        Any previous conversation in that session is discarded; a connected
        browser wallet carries over.  Nothing is stored when initialization
        fails.
        """
        agent = self._agent_factory()
        info = await agent.initialize(private_key)
        previous = self._agents.get(session_id)
        if previous is not None and previous.client_address:
            agent.set_client_address(previous.client_address)
        self._agents[session_id] = agent
        logger.info(f"Session '{session_id}' connected to {info.address}")
        return info

    @asynccontextmanager
    async def locked(self, session_id: str = DEFAULT_SESSION) -> AsyncIterator[None]:
        """Serialize requests for one session."""
        entry = self._locks.get(session_id)
        if entry is None:
            entry = self._locks[session_id] = _SessionLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0 and session_id not in self._agents:
                self._locks.pop(session_id, None)

    def drop(self, session_id: str) -> bool:
        """Forget a session.  Returns whether it existed."""
        existed = self._agents.pop(session_id, None) is not None
        entry = self._locks.get(session_id)
        if entry is not None and entry.users == 0:
            del self._locks[session_id]
        if existed:
            logger.info(f"Dropped session '{session_id}'")
        return existed

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._agents

    def __len__(self) -> int:
        return len(self._agents)
