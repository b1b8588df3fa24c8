"""Completion-check state machine.

Pure functions from a remote chat snapshot (and, once idle, its messages)
plus the stored poll count to a CheckResult. Evaluated in fixed priority:
remote error, streaming, pending/timeout, idle.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..models.chat import ChatMessage, ChatPhase, ChatSnapshot
from ..models.delegation import CheckResult, CheckStatus

QUEUED_TIMEOUT_SECONDS = 120


def assess_status(
    snapshot: ChatSnapshot,
    check_count: int,
    now: datetime,
    queued_timeout: float = QUEUED_TIMEOUT_SECONDS,
    since: Optional[datetime] = None,
) -> Optional[CheckResult]:
    """Decide from the chat status alone.

    Queued time is measured from ``created_at``, or from ``since`` (the last
    follow-up) when that is later. Returns None when the chat is idle and the
    messages must be inspected.
    """
    chat_id = snapshot.id

    if snapshot.error:
        return CheckResult(
            chat_id=chat_id,
            status=CheckStatus.ERROR,
            message=f"The agent reported an error: {snapshot.error}",
            chat_status=snapshot.status,
            check_count=check_count,
            error=snapshot.error,
        )

    phase = snapshot.phase
    if phase == ChatPhase.STREAMING:
        return CheckResult(
            chat_id=chat_id,
            status=CheckStatus.PROCESSING,
            message="The agent is still generating its response. Check again shortly.",
            chat_status=snapshot.status,
            check_count=check_count,
        )

    if phase == ChatPhase.PENDING:
        elapsed = snapshot.age_seconds(now)
        if since is not None:
            elapsed = min(elapsed, (now - since).total_seconds())
        if elapsed > queued_timeout:
            return CheckResult(
                chat_id=chat_id,
                status=CheckStatus.TIMEOUT,
                message=(
                    f"The agent has been in '{snapshot.status}' for {int(elapsed)}s without "
                    f"starting. It may be stuck; consider delegating the query again."
                ),
                chat_status=snapshot.status,
                check_count=check_count,
            )
        return CheckResult(
            chat_id=chat_id,
            status=CheckStatus.PROCESSING,
            message=f"The agent has not started yet (status '{snapshot.status}'). Check again shortly.",
            chat_status=snapshot.status,
            check_count=check_count,
        )

    if phase == ChatPhase.IDLE:
        return None

    raise ValueError(f"Unhandled chat phase: {phase}")


def collect_assistant_text(messages: list[ChatMessage]) -> str:
    """Every text part of every assistant message, in order, blank-line separated."""
    texts: list[str] = []
    for message in messages:
        if message.is_assistant:
            texts.extend(message.texts())
    return "\n\n".join(texts).strip()


def assess_messages(
    snapshot: ChatSnapshot,
    messages: list[ChatMessage],
    check_count: int,
    after_assistant: int = 0,
) -> CheckResult:
    """Finish the idle branch once the chat history is known.

    The first ``after_assistant`` assistant messages predate the query being
    checked and are neither waited on nor included in the response.
    """
    assistant_messages = [m for m in messages if m.is_assistant]
    new_messages = assistant_messages[max(after_assistant, 0):]
    if not new_messages:
        return CheckResult(
            chat_id=snapshot.id,
            status=CheckStatus.PROCESSING,
            message="The agent is idle but has not replied yet. Check again shortly.",
            chat_status=snapshot.status,
            check_count=check_count,
        )

    return CheckResult(
        chat_id=snapshot.id,
        status=CheckStatus.COMPLETED,
        message=f"The agent finished with {len(new_messages)} assistant message(s).",
        chat_status=snapshot.status,
        check_count=check_count,
        response=collect_assistant_text(new_messages),
        message_count=len(messages),
        assistant_message_count=len(assistant_messages),
    )
