"""Tests for the in-memory mail source."""

import pytest

from conftest import make_message
from inbox_facts.errors import SourceFetchError
from inbox_facts.sources import InMemoryMailSource, MailSource


def test_satisfies_protocol():
    assert isinstance(InMemoryMailSource(), MailSource)


@pytest.mark.asyncio
async def test_fetch_recent_respects_window_and_order():
    source = InMemoryMailSource(
        {
            "inbox": [
                make_message(entry_id="old", age_days=40),
                make_message(entry_id="older", age_days=10),
                make_message(entry_id="new", age_days=0.2),
            ]
        }
    )

    recent = await source.fetch_recent("inbox", 30)

    assert [m.entry_id for m in recent] == ["new", "older"]
    assert source.fetch_log == [("inbox", 30)]


@pytest.mark.asyncio
async def test_unknown_folder_is_empty():
    assert await InMemoryMailSource().fetch_recent("nowhere", 1) == []


@pytest.mark.asyncio
async def test_failing_folder():
    source = InMemoryMailSource({"inbox": [make_message()]})
    source.fail_folder("inbox")

    with pytest.raises(SourceFetchError):
        await source.fetch_recent("inbox", 1)

    source.restore_folder("inbox")
    assert len(await source.fetch_recent("inbox", 1)) == 1
