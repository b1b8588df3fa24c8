"""Delegation engine: discovery, chat lifecycle, and completion checks.

One engine serves one coordinator session. It owns no background work; every
network call happens inside a method the caller awaits.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from ..client.base import ChatClient
from ..errors import ChatApiError, ChatNotFoundError, DelegationError
from ..models.agent import SpecialistAgent
from ..models.delegation import CheckResult, DelegationHandle
from ..store.base import ContextStore
from .config import EngineSettings
from .conversations import ConversationLedger
from .polling import assess_messages, assess_status

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DelegationEngine:
    def __init__(
        self,
        client: ChatClient,
        store: ContextStore,
        settings: Optional[EngineSettings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.client = client
        self.ledger = ConversationLedger(store)
        self.settings = settings or EngineSettings()
        self.clock = clock

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def discover_agents(self, organization_id: Optional[str] = None) -> list[SpecialistAgent]:
        """List agents in one organization, or across every accessible one.

        Without an organization id, a failure listing one organization's agents
        is logged and contributes nothing; the rest are still returned.
        """
        if organization_id:
            return await self.client.list_agents(organization_id)

        organizations = await self.client.list_organizations()
        results = await asyncio.gather(
            *(self.client.list_agents(org.id) for org in organizations),
            return_exceptions=True,
        )

        agents: list[SpecialistAgent] = []
        for org, result in zip(organizations, results):
            if isinstance(result, ChatApiError):
                logger.warning("Skipping organization %s: %s", org.id, result)
                continue
            if isinstance(result, BaseException):
                raise result
            agents.extend(result)
        return agents

    async def get_agent_capabilities(self, agent_id: str) -> SpecialistAgent:
        return await self.client.get_agent(agent_id)

    # ------------------------------------------------------------------
    # Delegation
    # ------------------------------------------------------------------

    async def delegate(
        self,
        agent_id: str,
        organization_id: str,
        query: str,
        force_new_chat: bool = False,
    ) -> DelegationHandle:
        """Send ``query`` verbatim to an agent, continuing its chat when possible.

        Returns as soon as the message is accepted; never waits for the reply.
        """
        existing = await self.ledger.chat_id_for(agent_id)

        if existing and force_new_chat:
            logger.info("Starting a new chat with agent %s on request", agent_id)
        elif existing and await self._is_reusable(agent_id, existing):
            try:
                prior = sum(1 for m in await self.client.get_messages(existing) if m.is_assistant)
                await self.client.append_message(existing, query)
            except ChatNotFoundError:
                logger.info("Chat %s for agent %s no longer exists, recreating", existing, agent_id)
                await self.ledger.forget(agent_id)
            except ChatApiError as e:
                raise DelegationError(
                    f"Failed to send message to agent {agent_id}: {e}", agent_id=agent_id
                ) from e
            else:
                await self.ledger.reset_checks(existing)
                await self.ledger.mark_sent(existing, self.clock())
                logger.info("Continued chat %s with agent %s", existing, agent_id)
                return DelegationHandle(
                    chat_id=existing,
                    agent_id=agent_id,
                    query=query,
                    continued=True,
                    prior_assistant_messages=prior,
                )

        try:
            chat_id = await self.client.create_chat(
                organization_id, agent_id, query, stream=self.settings.streaming
            )
        except ChatApiError as e:
            raise DelegationError(
                f"Failed to create chat with agent {agent_id}: {e}", agent_id=agent_id
            ) from e

        await self.ledger.remember(agent_id, chat_id)
        logger.info("Created chat %s with agent %s", chat_id, agent_id)
        return DelegationHandle(chat_id=chat_id, agent_id=agent_id, query=query, continued=False)

    async def _is_reusable(self, agent_id: str, chat_id: str) -> bool:
        """Staleness gate. Forgets the record when the chat is missing or too old."""
        if not self.settings.staleness_enabled:
            return True

        try:
            snapshot = await self.client.get_chat(chat_id)
        except ChatNotFoundError:
            logger.info("Chat %s for agent %s is gone, recreating", chat_id, agent_id)
            await self.ledger.forget(agent_id)
            return False
        except ChatApiError as e:
            raise DelegationError(
                f"Failed to look up chat {chat_id} for agent {agent_id}: {e}", agent_id=agent_id
            ) from e

        age = snapshot.age_seconds(self.clock())
        if age > self.settings.max_age_seconds:
            logger.info(
                "Chat %s for agent %s is %.0fs old (limit %.0fs), recreating",
                chat_id,
                agent_id,
                age,
                self.settings.max_age_seconds,
            )
            await self.ledger.forget(agent_id)
            return False
        return True

    async def forget_agent(self, agent_id: str) -> Optional[str]:
        """Drop the stored conversation for an agent. Returns the old chat id."""
        chat_id = await self.ledger.chat_id_for(agent_id)
        if chat_id:
            await self.ledger.forget(agent_id)
        return chat_id

    # ------------------------------------------------------------------
    # Completion checks
    # ------------------------------------------------------------------

    async def check_response(self, chat_id: str, after_assistant: int = 0) -> CheckResult:
        """Poll one chat once. Raises ChatApiError if the remote cannot be read.

        ``after_assistant`` skips replies that were already in the chat when the
        query was appended (see ``DelegationHandle.prior_assistant_messages``).
        """
        check_count = await self.ledger.increment_checks(chat_id)
        since = await self.ledger.sent_at(chat_id)

        snapshot = await self.client.get_chat(chat_id)
        if not snapshot.id:
            snapshot = snapshot.model_copy(update={"id": chat_id})

        result = assess_status(
            snapshot,
            check_count,
            now=self.clock(),
            queued_timeout=self.settings.queued_timeout_seconds,
            since=since,
        )
        if result is None:
            messages = await self.client.get_messages(chat_id)
            result = assess_messages(snapshot, messages, check_count, after_assistant=after_assistant)

        logger.debug("Check %d of chat %s: %s", check_count, chat_id, result.status.value)
        return result
