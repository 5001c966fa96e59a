"""Unit tests for DataCore class."""

import pytest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

from milestrack.cache import TTLCache
from milestrack.config import RepositoryConfig
from milestrack.data import DataCore
from milestrack.data.mock import mock_document
from milestrack.models import GitHubIssue, Snapshot
from milestrack.query import MilestoneFilter
from milestrack.recovery import CorruptionError, FetchError


def make_source(snapshot=None, error=None):
    source = MagicMock()
    source.fetch_snapshot = AsyncMock(return_value=snapshot, side_effect=error)
    source.fetch_revisions = AsyncMock(return_value=[], side_effect=error)
    source.fetch_issues = AsyncMock(return_value=[GitHubIssue(number=1, title="Audit")], side_effect=error)
    source.fetch_snapshot_at = AsyncMock(return_value=None)
    source.aclose = AsyncMock()
    return source


class TestDataCore:
    """Test DataCore functionality."""

    @pytest.mark.asyncio
    async def test_snapshot_is_cached(self, make_snapshot, project_data):
        snapshot = make_snapshot(project_data("omni"))
        source = make_source(snapshot)
        core = DataCore(RepositoryConfig(), source=source)

        assert await core.get_snapshot() is snapshot
        assert await core.get_snapshot() is snapshot
        assert source.fetch_snapshot.await_count == 1

    @pytest.mark.asyncio
    async def test_snapshot_cache_expires(self, make_snapshot, project_data):
        clock = [0.0]
        source = make_source(make_snapshot(project_data("omni")))
        core = DataCore(source=source, data_cache=TTLCache(ttl=300, clock=lambda: clock[0]))

        await core.get_snapshot()
        clock[0] = 300.0
        await core.get_snapshot()
        assert source.fetch_snapshot.await_count == 2

    @pytest.mark.asyncio
    async def test_mock_fallback_not_cached(self):
        """Unavailable remotes yield the mock dataset, and the next call retries."""
        source = make_source(error=FetchError("offline"))
        core = DataCore(source=source)

        snapshot = await core.get_snapshot()

        assert [p.id for p in snapshot.projects] == ["omnibridge", "agent-hub-sdk", "meteor-wallet"]
        assert snapshot == Snapshot.from_document(mock_document())

        await core.get_snapshot()
        assert source.fetch_snapshot.await_count == 2

    @pytest.mark.asyncio
    async def test_corrupt_remote_uses_mock(self):
        core = DataCore(source=make_source(error=CorruptionError("bad json")))
        snapshot = await core.get_snapshot()
        assert snapshot.find_project("omnibridge").find_milestone("omnibridge-m5").title == "Mainnet Beta"

    @pytest.mark.asyncio
    async def test_revisions_and_issues_degrade(self):
        core = DataCore(source=make_source(error=FetchError("offline")))
        assert await core.get_revisions() == []
        assert await core.get_issues() == []

    @pytest.mark.asyncio
    async def test_issues_cached(self):
        source = make_source()
        core = DataCore(source=source)

        (issue,) = await core.get_issues()
        await core.get_issues()

        assert issue.number == 1
        assert source.fetch_issues.await_count == 1

    @pytest.mark.asyncio
    async def test_changelog_uses_config_limit(self):
        source = make_source(error=FetchError("offline"))
        core = DataCore(RepositoryConfig(max_revisions=3), source=source)

        assert core.changelog.limit == 3
        (entry,) = await core.get_changelog()
        assert entry.id == "mock-1"

    @pytest.mark.asyncio
    async def test_timeline(self, make_snapshot, project_data, milestone_data, now):
        snapshot = make_snapshot(project_data("omni", name="Omnibridge", milestones=[
            milestone_data("omni-m2", status="pending", due="2024-06-10"),
            milestone_data("omni-m1", status="pending", due="2024-05-01"),
            milestone_data("omni-m3", status="completed", due="2024-04-01"),
        ]))
        core = DataCore(source=make_source(snapshot))

        timeline = await core.get_timeline(MilestoneFilter(status="incomplete"), now)

        assert [m.id for m in timeline] == ["omni-m1", "omni-m2"]
        assert timeline[0].project_name == "Omnibridge"

    @pytest.mark.asyncio
    async def test_status_entries(self, make_snapshot, project_data, milestone_data):
        snapshot = make_snapshot(project_data("p", milestones=[milestone_data("p-m1", status="pending", due="2024-05-01")]))
        core = DataCore(source=make_source(snapshot))

        (entry,) = await core.get_status_entries(datetime(2024, 5, 15))
        assert entry.id == "delayed-2024.05.15"

    @pytest.mark.asyncio
    async def test_status_entries_offline_use_mock(self):
        """Status entries read the same mock snapshot the projects view falls back to."""
        source = make_source(error=FetchError("offline"))
        core = DataCore(source=source)

        entries = await core.get_status_entries(datetime(2024, 8, 20))

        assert len(entries) == 1
        (delayed,) = entries
        assert delayed.id == "delayed-2024.08.20"
        assert [c.milestone_id for c in delayed.changes] == ["omnibridge-m5", "agent-hub-sdk-m3"]

    @pytest.mark.asyncio
    async def test_status_entries_share_snapshot_cache(self, make_snapshot, project_data, milestone_data):
        snapshot = make_snapshot(project_data("p", milestones=[milestone_data("p-m1", status="pending", due="2024-05-01")]))
        source = make_source(snapshot)
        core = DataCore(source=source)

        await core.get_snapshot()
        await core.get_status_entries(datetime(2024, 5, 15))
        await core.get_status_entries(datetime(2024, 5, 15))

        assert source.fetch_snapshot.await_count == 1

    @pytest.mark.asyncio
    async def test_context_manager_closes_source(self):
        source = make_source()
        async with DataCore(source=source):
            pass
        source.aclose.assert_awaited_once()
