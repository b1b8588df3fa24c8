"""Shared fixtures for Agent Relay tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import pytest

from relay.core.config import EngineSettings
from relay.core.engine import DelegationEngine
from relay.errors import ChatApiError, ChatNotFoundError
from relay.models.agent import Organization, SpecialistAgent
from relay.models.chat import ChatMessage, ChatSnapshot
from relay.store.memory import MemoryContextStore

NOW = datetime(2026, 3, 2, 12, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FakeChatClient:
    """In-memory stand-in for the remote chat service."""

    def __init__(self, clock: Optional[FixedClock] = None):
        self.clock = clock or FixedClock()
        self.organizations: list[Organization] = []
        self.agents_by_org: dict[str, list[SpecialistAgent]] = {}
        self.failing_orgs: set[str] = set()
        self.chats: dict[str, ChatSnapshot] = {}
        self.messages: dict[str, list[ChatMessage]] = {}
        self.created: list[tuple[str, str, str, bool]] = []
        self.appended: list[tuple[str, str]] = []
        self.append_errors: dict[str, Exception] = {}
        self.create_error: Optional[Exception] = None
        self.get_chat_calls = 0
        self._next_id = 0
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        self.closed = True

    # -- setup helpers -------------------------------------------------

    def add_agent(self, agent: SpecialistAgent) -> SpecialistAgent:
        if agent.organization_id not in {o.id for o in self.organizations}:
            self.organizations.append(Organization(id=agent.organization_id))
        self.agents_by_org.setdefault(agent.organization_id, []).append(agent)
        return agent

    def add_chat(self, chat_id: str, status: str = "idle", age_seconds: float = 0) -> None:
        self.chats[chat_id] = ChatSnapshot(
            id=chat_id,
            status=status,
            created_at=self.clock() - timedelta(seconds=age_seconds),
        )
        self.messages.setdefault(chat_id, [])

    def set_status(self, chat_id: str, status: str, error: Optional[str] = None) -> None:
        self.chats[chat_id] = self.chats[chat_id].model_copy(update={"status": status, "error": error})

    def add_assistant(self, chat_id: str, *texts: str) -> None:
        self.messages[chat_id].append(
            ChatMessage.model_validate(
                {"role": "assistant", "parts": [{"type": "text", "text": t} for t in texts]}
            )
        )

    # -- ChatClient ----------------------------------------------------

    async def list_organizations(self) -> list[Organization]:
        return list(self.organizations)

    async def list_agents(self, organization_id: str) -> list[SpecialistAgent]:
        if organization_id in self.failing_orgs:
            raise ChatApiError("500 | internal error", status_code=500)
        return list(self.agents_by_org.get(organization_id, []))

    async def get_agent(self, agent_id: str) -> SpecialistAgent:
        for agents in self.agents_by_org.values():
            for agent in agents:
                if agent.id == agent_id:
                    return agent
        raise ChatNotFoundError("404 | agent not found", status_code=404)

    async def create_chat(self, organization_id, agent_id, query, stream=False) -> str:
        if self.create_error is not None:
            raise self.create_error
        self._next_id += 1
        chat_id = f"chat-{self._next_id}"
        self.created.append((organization_id, agent_id, query, stream))
        self.chats[chat_id] = ChatSnapshot(id=chat_id, status="queued", created_at=self.clock())
        self.messages[chat_id] = [
            ChatMessage.model_validate({"role": "user", "parts": [{"type": "text", "text": query}]})
        ]
        return chat_id

    async def append_message(self, chat_id: str, text: str) -> None:
        if chat_id in self.append_errors:
            raise self.append_errors[chat_id]
        if chat_id not in self.chats:
            raise ChatNotFoundError("404 | chat not found", status_code=404)
        self.appended.append((chat_id, text))

    async def get_chat(self, chat_id: str) -> ChatSnapshot:
        self.get_chat_calls += 1
        if chat_id not in self.chats:
            raise ChatNotFoundError("404 | chat not found", status_code=404)
        return self.chats[chat_id]

    async def get_messages(self, chat_id: str) -> list[ChatMessage]:
        return list(self.messages.get(chat_id, []))


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def client(clock: FixedClock) -> FakeChatClient:
    return FakeChatClient(clock)


@pytest.fixture
def store() -> MemoryContextStore:
    return MemoryContextStore()


@pytest.fixture
def engine(client: FakeChatClient, store: MemoryContextStore, clock: FixedClock) -> DelegationEngine:
    return DelegationEngine(client, store, EngineSettings(), clock=clock)


@pytest.fixture
def release_agent(client: FakeChatClient) -> SpecialistAgent:
    return client.add_agent(
        SpecialistAgent(
            id="agent-release",
            organization_id="org-1",
            name="Release Notes",
            description="Answers questions about what shipped in each version.",
        )
    )


@pytest.fixture
def docs_agent(client: FakeChatClient) -> SpecialistAgent:
    return client.add_agent(
        SpecialistAgent(
            id="agent-docs",
            organization_id="org-2",
            name="Docs",
            description="Knows the product documentation.",
        )
    )


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """Create a project with a .relay config."""
    project = tmp_path / "project"
    (project / ".relay").mkdir(parents=True)
    (project / ".relay" / "config.yaml").write_text(
        "conversation:\n  max_age_seconds: 600\n\nstore:\n  backend: memory\n",
        encoding="utf-8",
    )
    return project
