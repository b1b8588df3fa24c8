"""Typed access to the per-session conversation records."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from ..store.base import ContextStore, agent_chat_key, check_count_key, sent_at_key

logger = logging.getLogger(__name__)


class ConversationLedger:
    """Reads and writes the store entries behind each agent conversation."""

    def __init__(self, store: ContextStore):
        self.store = store

    async def chat_id_for(self, agent_id: str) -> Optional[str]:
        return await self.store.get(agent_chat_key(agent_id)) or None

    async def remember(self, agent_id: str, chat_id: str) -> None:
        await self.store.set(agent_chat_key(agent_id), chat_id)
        await self.reset_checks(chat_id)

    async def forget(self, agent_id: str) -> None:
        await self.store.delete(agent_chat_key(agent_id))

    async def check_count(self, chat_id: str) -> int:
        raw = await self.store.get(check_count_key(chat_id))
        if raw is None:
            return 0
        try:
            return max(int(raw), 0)
        except ValueError:
            logger.warning("Ignoring unreadable poll count %r for chat %s", raw, chat_id)
            return 0

    async def reset_checks(self, chat_id: str) -> None:
        await self.store.set(check_count_key(chat_id), "0")

    async def increment_checks(self, chat_id: str) -> int:
        # Read-then-write; concurrent pollers of one chat may lose an increment.
        count = await self.check_count(chat_id) + 1
        await self.store.set(check_count_key(chat_id), str(count))
        return count

    async def mark_sent(self, chat_id: str, when: datetime) -> None:
        await self.store.set(sent_at_key(chat_id), when.isoformat())

    async def sent_at(self, chat_id: str) -> Optional[datetime]:
        """When a follow-up was last appended to ``chat_id``, if ever."""
        raw = await self.store.get(sent_at_key(chat_id))
        if not raw:
            return None
        try:
            when = datetime.fromisoformat(raw)
        except ValueError:
            logger.warning("Ignoring unreadable send time %r for chat %s", raw, chat_id)
            return None
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        return when
