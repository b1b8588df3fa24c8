"""Remote chat payload models.

Chat status strings are classified into a closed set of phases, and message
parts are tagged by their ``type`` so callers never compare raw strings.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChatPhase(str, Enum):
    STREAMING = "streaming"
    IDLE = "idle"
    PENDING = "pending"


class ChatSnapshot(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    status: str
    created_at: datetime
    error: Optional[str] = None

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("error", mode="before")
    @classmethod
    def _flatten_error(cls, value: object) -> object:
        # Some deployments report {"message": ..., "code": ...}
        if isinstance(value, dict):
            return str(value.get("message") or value)
        if value == "":
            return None
        return value

    @property
    def phase(self) -> ChatPhase:
        if self.status == ChatPhase.STREAMING.value:
            return ChatPhase.STREAMING
        if self.status == ChatPhase.IDLE.value:
            return ChatPhase.IDLE
        return ChatPhase.PENDING

    def age_seconds(self, now: datetime) -> float:
        return (now - self.created_at).total_seconds()


class TextPart(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Literal["text"]
    text: str = ""


class OtherPart(BaseModel):
    """Any non-text part (tool calls, files, reasoning). Carried, never read."""

    model_config = ConfigDict(extra="allow")

    type: str


MessagePart = Annotated[Union[TextPart, OtherPart], Field(union_mode="left_to_right")]


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: str
    parts: list[MessagePart] = []

    @property
    def is_assistant(self) -> bool:
        return self.role == "assistant"

    def texts(self) -> list[str]:
        return [part.text for part in self.parts if isinstance(part, TextPart)]
