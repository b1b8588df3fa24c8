"""Context store contract and key layout.

A store is scoped to one coordinator session. Keys:

    agent_chat:<agent_id>   -> remote chat id
    check_count:<chat_id>   -> polls since the last outbound message
    sent_at:<chat_id>       -> when a follow-up was last appended (ISO 8601)
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class ContextStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


def agent_chat_key(agent_id: str) -> str:
    return f"agent_chat:{agent_id}"


def check_count_key(chat_id: str) -> str:
    return f"check_count:{chat_id}"


def sent_at_key(chat_id: str) -> str:
    return f"sent_at:{chat_id}"
