"""Delegation and polling result models."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class DelegationHandle(BaseModel):
    """Returned as soon as a query is handed to a specialist.

    The engine keeps nothing from it; everything needed to resume polling
    lives in the context store under the chat id. For a continued chat,
    ``prior_assistant_messages`` counts the replies that were already there,
    so only later ones answer ``query``.
    """

    chat_id: str
    agent_id: str
    query: str
    continued: bool = False
    prior_assistant_messages: int = 0


class CheckStatus(str, Enum):
    PROCESSING = "processing"
    TIMEOUT = "timeout"
    ERROR = "error"
    COMPLETED = "completed"


TERMINAL_STATUSES = frozenset({CheckStatus.COMPLETED, CheckStatus.TIMEOUT, CheckStatus.ERROR})


class CheckResult(BaseModel):
    chat_id: str
    status: CheckStatus
    message: str
    chat_status: Optional[str] = None
    check_count: int = 0
    response: Optional[str] = None
    message_count: Optional[int] = None
    assistant_message_count: Optional[int] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class RelayStatus(str, Enum):
    COMPLETE = "COMPLETE"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"


class AgentOutcome(BaseModel):
    """Final state of one specialist for one relayed query."""

    agent_id: str
    agent_name: str
    handle: Optional[DelegationHandle] = None
    result: Optional[CheckResult] = None
    error: Optional[str] = None
    duration_seconds: float = 0

    @property
    def status(self) -> CheckStatus:
        if self.result is not None:
            return self.result.status
        return CheckStatus.ERROR

    @property
    def response(self) -> Optional[str]:
        if self.result is not None and self.result.status == CheckStatus.COMPLETED:
            return self.result.response
        return None
