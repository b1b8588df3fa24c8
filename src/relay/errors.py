"""Exception hierarchy for Agent Relay."""

from __future__ import annotations

from typing import Optional


class RelayError(Exception):
    """Base class for all relay errors."""


class ConfigurationError(RelayError):
    """Missing credential or invalid configuration. Never retried."""


class ChatApiError(RelayError):
    """Remote chat API returned a non-2xx response or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ChatNotFoundError(ChatApiError):
    """The remote chat no longer exists (404)."""


class DelegationError(RelayError):
    """A query could not be delegated to a specialist agent."""

    def __init__(self, message: str, agent_id: str = ""):
        super().__init__(message)
        self.agent_id = agent_id
