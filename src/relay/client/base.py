"""Remote chat client contract.

Everything the delegation engine needs from the remote chat service. Every
operation may raise ChatApiError; lookups and appends on a deleted chat raise
ChatNotFoundError instead.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..models.agent import Organization, SpecialistAgent
from ..models.chat import ChatMessage, ChatSnapshot


@runtime_checkable
class ChatClient(Protocol):
    async def list_organizations(self) -> list[Organization]: ...

    async def list_agents(self, organization_id: str) -> list[SpecialistAgent]: ...

    async def get_agent(self, agent_id: str) -> SpecialistAgent: ...

    async def create_chat(
        self,
        organization_id: str,
        agent_id: str,
        query: str,
        stream: bool = False,
    ) -> str: ...

    async def append_message(self, chat_id: str, text: str) -> None: ...

    async def get_chat(self, chat_id: str) -> ChatSnapshot: ...

    async def get_messages(self, chat_id: str) -> list[ChatMessage]: ...


def user_message(text: str) -> dict:
    """Wire shape of one user message. The text is never altered."""
    return {"role": "user", "parts": [{"type": "text", "text": text}]}
