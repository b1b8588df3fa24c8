"""Tests for core/status.py."""

from __future__ import annotations

import io

import pytest
from rich.console import Console

from relay.core.status import NullStatusIndicator, RichStatusIndicator, StatusIndicator


class TestStatusIndicators:
    def test_protocol(self):
        assert isinstance(NullStatusIndicator(), StatusIndicator)
        assert isinstance(RichStatusIndicator(Console(file=io.StringIO())), StatusIndicator)

    @pytest.mark.asyncio
    async def test_rich_start_update_clear(self):
        indicator = RichStatusIndicator(Console(file=io.StringIO()))
        await indicator.update("Consulting Docs...")
        first = indicator._status
        assert first is not None

        await indicator.update("Waiting on 1 specialist(s)...")
        assert indicator._status is first

        await indicator.clear()
        assert indicator._status is None
        await indicator.clear()

    @pytest.mark.asyncio
    async def test_null_is_noop(self):
        indicator = NullStatusIndicator()
        await indicator.update("x")
        await indicator.clear()
