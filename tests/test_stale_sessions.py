"""
Tests for the stale session monitor task.
"""

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import pytest

from realtime_relay.schemas.session import SessionInfo, SessionState
from realtime_relay.tasks.stale_sessions import stale_session_task


def make_stub_session(session_id: str, age_seconds: float):
    created_at = datetime.now(UTC) - timedelta(seconds=age_seconds)
    return SimpleNamespace(
        id=session_id,
        info=lambda: SessionInfo(
            id=session_id,
            state=SessionState.ACTIVE,
            created_at=created_at,
            age_seconds=age_seconds,
            upstream_connected=True,
        ),
    )


class TestStaleSessionTask:
    """Tests for stale_session_task."""

    @pytest.mark.asyncio
    async def test_warns_about_stale_sessions_only(self, registry, caplog):
        """Test a warning is logged per session older than the threshold."""
        registry.register(make_stub_session("fresh-one", age_seconds=5))
        registry.register(make_stub_session("stale-one", age_seconds=7200))
        caplog.set_level(logging.WARNING, logger="realtime_relay")

        task = asyncio.create_task(stale_session_task(registry, 3600, 0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert "Session stale-one open for 7200s" in caplog.text
        assert "fresh-one" not in caplog.text

    @pytest.mark.asyncio
    async def test_never_closes_sessions(self, registry):
        """Test the monitor only reports and leaves sessions registered."""
        registry.register(make_stub_session("stale-one", age_seconds=7200))

        task = asyncio.create_task(stale_session_task(registry, 3600, 0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert "stale-one" in registry

    @pytest.mark.asyncio
    async def test_cancellation_logged(self, registry, caplog):
        caplog.set_level(logging.INFO, logger="realtime_relay")

        task = asyncio.create_task(stale_session_task(registry, 3600, 60))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert "Stale session monitor cancelled" in caplog.text
