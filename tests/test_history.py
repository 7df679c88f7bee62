"""Unit tests for discord_backup.backup.history."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from discord_backup.backup.client import DiscordAPIError
from discord_backup.backup.errors import FetchFailed, TimedOut
from discord_backup.backup.history import (
    Empty,
    Error,
    HistoryCursor,
    Page,
    Timeout,
    fetch_history,
)
from tests.factories import FakeHistory, make_channel, message_data


@pytest.fixture(autouse=True)
def mock_logger():
    with patch("discord_backup.backup.history.logger") as m:
        yield m


def _client_for(history: FakeHistory) -> AsyncMock:
    client = AsyncMock()
    client.get_messages.side_effect = history.__call__
    return client


# ---------------------------------------------------------------------------
# TestHistoryCursor
# ---------------------------------------------------------------------------


class TestHistoryCursor:
    """Each transition of the pagination state machine on its own."""

    @pytest.mark.asyncio
    async def test_first_step_has_no_cursor(self):
        history = FakeHistory(150)
        state = HistoryCursor.start(500, time_budget=60)

        step = await state.step(_client_for(history))

        assert isinstance(step, Page)
        assert history.calls == [None]
        assert len(step.messages) == 100
        assert state.cursor == 51

    @pytest.mark.asyncio
    async def test_next_step_uses_oldest_id_as_before(self):
        history = FakeHistory(150)
        client = _client_for(history)
        state = HistoryCursor.start(500, time_budget=60)

        await state.step(client)
        await state.step(client)

        assert history.calls == [None, 51]
        assert state.cursor == 1
        assert len(state.accumulated) == 150

    @pytest.mark.asyncio
    async def test_empty_page(self):
        state = HistoryCursor.start(500, time_budget=60)

        step = await state.step(_client_for(FakeHistory(0)))

        assert isinstance(step, Empty)
        assert state.accumulated == []

    @pytest.mark.asyncio
    async def test_expired_deadline_makes_no_request(self):
        client = AsyncMock()
        state = HistoryCursor.start(500, time_budget=60)
        state.deadline = asyncio.get_running_loop().time() - 1

        step = await state.step(client)

        assert isinstance(step, Timeout)
        client.get_messages.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_slow_page_times_out(self):
        async def slow(**kwargs):
            await asyncio.sleep(5)
            return []

        client = AsyncMock()
        client.get_messages.side_effect = slow
        state = HistoryCursor.start(500, time_budget=0.05)

        step = await state.step(client)

        assert isinstance(step, Timeout)

    @pytest.mark.asyncio
    async def test_api_error(self):
        client = AsyncMock()
        client.get_messages.side_effect = DiscordAPIError(403, "Missing Access")
        state = HistoryCursor.start(500, time_budget=60)

        step = await state.step(client)

        assert isinstance(step, Error)
        assert step.cause.status_code == 403

    @pytest.mark.asyncio
    async def test_transport_error(self):
        client = AsyncMock()
        client.get_messages.side_effect = httpx.ConnectError("reset")
        state = HistoryCursor.start(500, time_budget=60)

        step = await state.step(client)

        assert isinstance(step, Error)

    @pytest.mark.asyncio
    async def test_repeated_page_ends_instead_of_looping(self):
        client = AsyncMock()
        client.get_messages.return_value = [message_data(2), message_data(1)]
        state = HistoryCursor.start(500, time_budget=60)

        first = await state.step(client)
        second = await state.step(client)

        assert isinstance(first, Page)
        assert isinstance(second, Empty)
        assert [m.id for m in state.accumulated] == [2, 1]

    @pytest.mark.asyncio
    async def test_overlapping_page_drops_duplicates(self):
        client = AsyncMock()
        client.get_messages.side_effect = [
            [message_data(5), message_data(4), message_data(3)],
            [message_data(3), message_data(2)],
        ]
        state = HistoryCursor.start(500, time_budget=60)

        await state.step(client)
        step = await state.step(client)

        assert [m.id for m in step.messages] == [2]
        assert [m.id for m in state.accumulated] == [5, 4, 3, 2]


# ---------------------------------------------------------------------------
# TestFetchHistory
# ---------------------------------------------------------------------------


class TestFetchHistory:
    """Tests for fetch_history."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [0, 99, 100, 101, 250])
    async def test_returns_every_message_once(self, count):
        history = FakeHistory(count)

        messages = await fetch_history(_client_for(history), make_channel(), 60)

        ids = [m.id for m in messages]
        assert len(ids) == count
        assert len(set(ids)) == count
        assert ids == list(range(count, 0, -1))

    @pytest.mark.asyncio
    async def test_requests_until_empty_page(self):
        history = FakeHistory(250)

        await fetch_history(_client_for(history), make_channel(), 60)

        assert history.calls == [None, 151, 51, 1]

    @pytest.mark.asyncio
    async def test_timeout_carries_partial_history(self):
        history = FakeHistory(250)

        async def stall_after_first_page(**kwargs):
            if history.calls:
                await asyncio.sleep(5)
            return await history(**kwargs)

        client = AsyncMock()
        client.get_messages.side_effect = stall_after_first_page

        with pytest.raises(TimedOut) as exc_info:
            await fetch_history(client, make_channel(channel_id=7), 0.1)

        assert exc_info.value.channel_id == 7
        assert len(exc_info.value.partial) == 100

    @pytest.mark.asyncio
    async def test_failed_page_is_not_retried(self):
        client = AsyncMock()
        client.get_messages.side_effect = [
            [message_data(i) for i in range(200, 100, -1)],
            httpx.ReadTimeout("read timeout"),
        ]

        with pytest.raises(FetchFailed) as exc_info:
            await fetch_history(client, make_channel(), 60)

        assert client.get_messages.await_count == 2
        assert len(exc_info.value.partial) == 100
        assert isinstance(exc_info.value.cause, httpx.ReadTimeout)

    @pytest.mark.asyncio
    async def test_on_page_callback_per_page(self):
        seen: list[int] = []

        await fetch_history(
            _client_for(FakeHistory(150)),
            make_channel(),
            60,
            on_page=lambda state: seen.append(len(state.accumulated)),
        )

        assert seen == [100, 150]
