"""Relay orchestrator: fan a query out to specialists, poll, and merge.

The engine answers one question at a time (delegate, check). This module is
the calling flow that drives it: concurrent delegation, bounded polling with
backoff, and the hand-off to synthesis.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from rich.console import Console

from ..errors import ChatApiError, DelegationError
from ..models.agent import SpecialistAgent
from ..models.delegation import AgentOutcome, CheckResult, CheckStatus, DelegationHandle
from ..utils.sanitize import sanitize_error
from .engine import DelegationEngine
from .status import NullStatusIndicator, StatusIndicator
from .synthesis import calculate_relay_status, get_exit_code, merge_outcomes

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def backoff_delay(interval: float, attempt: int) -> float:
    """Delay before check ``attempt + 1``: grows linearly, capped at 3x."""
    return interval * min(max(attempt, 1), 3)


async def dispatch(
    engine: DelegationEngine,
    query: str,
    targets: list[SpecialistAgent],
    force_new_chat: bool = False,
) -> list[tuple[SpecialistAgent, Optional[DelegationHandle], Optional[str]]]:
    """Delegate ``query`` to every target concurrently.

    Returns (agent, handle, error) per target, in target order. A failed
    delegation yields a None handle and an error message.
    """

    async def _one(agent: SpecialistAgent):
        try:
            handle = await engine.delegate(
                agent.id, agent.organization_id, query, force_new_chat=force_new_chat
            )
        except DelegationError as e:
            logger.warning("Delegation to %s failed: %s", agent.name, e)
            return agent, None, sanitize_error(str(e))
        return agent, handle, None

    return list(await asyncio.gather(*(_one(agent) for agent in targets)))


async def poll_until_terminal(
    engine: DelegationEngine,
    chat_id: str,
    interval: float = 2,
    max_checks: int = 90,
    sleep: Sleep = asyncio.sleep,
    after_assistant: int = 0,
) -> CheckResult:
    """Check a chat until it reaches a terminal status or the budget runs out.

    Remote failures while checking become an ``error`` result. When the
    budget is exhausted the last ``processing`` result is returned. The first
    ``after_assistant`` assistant replies never count as completion.
    """
    result: Optional[CheckResult] = None
    for attempt in range(1, max(max_checks, 1) + 1):
        try:
            result = await engine.check_response(chat_id, after_assistant=after_assistant)
        except ChatApiError as e:
            error = sanitize_error(str(e))
            return CheckResult(
                chat_id=chat_id,
                status=CheckStatus.ERROR,
                message=f"Could not check on the agent: {error}",
                check_count=await engine.ledger.check_count(chat_id),
                error=error,
            )

        if result.is_terminal or attempt >= max_checks:
            break
        await sleep(backoff_delay(interval, attempt))

    return result


async def relay_query(
    engine: DelegationEngine,
    query: str,
    targets: list[SpecialistAgent],
    interval: float = 2,
    max_checks: int = 90,
    force_new_chat: bool = False,
    timeout_retries: int = 0,
    status: Optional[StatusIndicator] = None,
    sleep: Sleep = asyncio.sleep,
) -> list[AgentOutcome]:
    """Delegate to every target and wait for each one to settle.

    A ``timeout`` result may be retried with a fresh chat up to
    ``timeout_retries`` times. The status indicator is cleared on every exit
    path, cancellation included; remote chats keep running server-side.
    """
    status = status or NullStatusIndicator()
    remaining = {agent.id for agent in targets}

    async def _settle(agent, handle, error, started) -> AgentOutcome:
        if handle is None:
            return AgentOutcome(
                agent_id=agent.id,
                agent_name=agent.name,
                error=error,
                duration_seconds=round(time.time() - started, 2),
            )

        result = await poll_until_terminal(
            engine, handle.chat_id, interval, max_checks, sleep, after_assistant=handle.prior_assistant_messages
        )
        retries = 0
        while result.status == CheckStatus.TIMEOUT and retries < timeout_retries:
            retries += 1
            logger.info("Agent %s timed out, retrying with a new chat (%d)", agent.name, retries)
            try:
                handle = await engine.delegate(
                    agent.id, agent.organization_id, query, force_new_chat=True
                )
            except DelegationError as e:
                return AgentOutcome(
                    agent_id=agent.id,
                    agent_name=agent.name,
                    result=result,
                    error=sanitize_error(str(e)),
                    duration_seconds=round(time.time() - started, 2),
                )
            result = await poll_until_terminal(engine, handle.chat_id, interval, max_checks, sleep)

        remaining.discard(agent.id)
        if remaining:
            await status.update(f"Waiting on {len(remaining)} specialist(s)...")
        return AgentOutcome(
            agent_id=agent.id,
            agent_name=agent.name,
            handle=handle,
            result=result,
            duration_seconds=round(time.time() - started, 2),
        )

    started = time.time()
    try:
        names = ", ".join(agent.name for agent in targets)
        await status.update(f"Consulting {names}...")
        dispatched = await dispatch(engine, query, targets, force_new_chat=force_new_chat)
        return list(
            await asyncio.gather(
                *(_settle(agent, handle, error, started) for agent, handle, error in dispatched)
            )
        )
    finally:
        await status.clear()


def select_targets(
    agents: list[SpecialistAgent],
    agent_ids: Optional[list[str]] = None,
) -> list[SpecialistAgent]:
    """Pick the agents named by id or name (case-insensitive), keeping request order."""
    if not agent_ids:
        return list(agents)

    selected: list[SpecialistAgent] = []
    for wanted in agent_ids:
        key = wanted.strip().lower()
        for agent in agents:
            if (agent.id.lower() == key or agent.name.lower() == key) and agent not in selected:
                selected.append(agent)
                break
    return selected


async def run_relay(
    engine: DelegationEngine,
    query: str,
    agent_ids: Optional[list[str]] = None,
    organization_id: Optional[str] = None,
    force_new_chat: bool = False,
    interval: float = 2,
    max_checks: int = 90,
    timeout_retries: int = 0,
    console: Optional[Console] = None,
    status: Optional[StatusIndicator] = None,
    sleep: Sleep = asyncio.sleep,
) -> int:
    """CLI flow: discover, relay, print the merged answer. Returns exit code."""
    console = console or Console()

    try:
        agents = await engine.discover_agents(organization_id)
    except ChatApiError as e:
        console.print(f"  [red]ERROR[/red] Agent discovery failed: {sanitize_error(str(e))}")
        return 14

    targets = select_targets(agents, agent_ids)
    if not targets:
        console.print("  [red]ERROR[/red] No matching agents to consult")
        return 11

    console.print(f"  [green]OK[/green] Consulting: {', '.join(a.name for a in targets)}")

    outcomes = await relay_query(
        engine,
        query,
        targets,
        interval=interval,
        max_checks=max_checks,
        force_new_chat=force_new_chat,
        timeout_retries=timeout_retries,
        status=status,
        sleep=sleep,
    )

    for outcome in outcomes:
        if outcome.status == CheckStatus.COMPLETED:
            console.print(
                f"  [green]OK[/green] {outcome.agent_name} "
                f"in {round(outcome.duration_seconds, 1)}s"
            )
        else:
            detail = outcome.error or (outcome.result.message if outcome.result else "")
            console.print(f"  [yellow]{outcome.status.value.upper()}[/yellow] {outcome.agent_name}: {detail}")

    console.print()
    console.print(merge_outcomes(query, outcomes), markup=False)
    return get_exit_code(calculate_relay_status(outcomes))
