"""Live "working" indicators shown while specialists are being consulted."""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from rich.console import Console
from rich.status import Status


@runtime_checkable
class StatusIndicator(Protocol):
    async def update(self, text: str) -> None: ...

    async def clear(self) -> None: ...


class NullStatusIndicator:
    async def update(self, text: str) -> None:
        return None

    async def clear(self) -> None:
        return None


class RichStatusIndicator:
    """Terminal spinner standing in for a chat platform's status line."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self._status: Optional[Status] = None

    async def update(self, text: str) -> None:
        if self._status is None:
            self._status = self.console.status(text)
            self._status.start()
        else:
            self._status.update(text)

    async def clear(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None
