"""
DataCore - Composition root for milestrack.

Owns the remote source, the expiring caches and the changelog service, and
applies the degrade-never-crash policy: every public call returns usable data
(mock projects, empty lists, the fallback changelog) instead of raising.
"""
from datetime import datetime
from typing import List, Optional

from milestrack.cache import TTLCache
from milestrack.changelog import ChangelogService
from milestrack.config import RepositoryConfig
from milestrack.models import ChangelogEntry, GitHubIssue, Revision, Snapshot, TimelineMilestone
from milestrack.query import MilestoneFilter, filter_milestones, flatten_milestones, sort_by_due
from milestrack.recovery import MilestrackError
from milestrack.logs import get_logger
from .mock import mock_document
from .source import GitHubSource

log = get_logger("data")

PROJECTS_CACHE_KEY = "projects-data"
ISSUES_CACHE_KEY = "issues-data"

class DataCore:
    """Entry point used by the CLI and any presentation layer."""

    def __init__(
        self,
        config: Optional[RepositoryConfig] = None,
        source: Optional[GitHubSource] = None,
        data_cache: Optional[TTLCache] = None,
        changelog_cache: Optional[TTLCache] = None,
    ):
        self.config = config or RepositoryConfig()
        self.source = source or GitHubSource(self.config)
        self.data_cache = data_cache or TTLCache(ttl=self.config.projects_ttl)
        self.changelog = ChangelogService(
            self.source,
            cache=changelog_cache or TTLCache(ttl=self.config.changelog_ttl),
            limit=self.config.max_revisions,
            snapshot_provider=self.get_snapshot,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.source.aclose()

    async def get_snapshot(self) -> Snapshot:
        """Current projects snapshot; the mock dataset when the remote is unavailable."""
        cached = self.data_cache.get(PROJECTS_CACHE_KEY)
        if cached is not None:
            return cached

        try:
            snapshot = await self.source.fetch_snapshot()
        except MilestrackError as e:
            log.error(f"Error fetching projects data, using mock data: {e}")
            return Snapshot.from_document(mock_document())

        self.data_cache.set(PROJECTS_CACHE_KEY, snapshot)
        return snapshot

    async def get_revisions(self) -> List[Revision]:
        try:
            return await self.source.fetch_revisions()
        except MilestrackError as e:
            log.error(f"Error fetching revisions: {e}")
            return []

    async def get_issues(self) -> List[GitHubIssue]:
        cached = self.data_cache.get(ISSUES_CACHE_KEY)
        if cached is not None:
            return list(cached)

        try:
            issues = await self.source.fetch_issues()
        except MilestrackError as e:
            log.error(f"Error fetching issues: {e}")
            return []

        self.data_cache.set(ISSUES_CACHE_KEY, issues)
        return list(issues)

    async def get_changelog(self) -> List[ChangelogEntry]:
        return await self.changelog.get_changelog()

    async def get_status_entries(self, now: Optional[datetime] = None) -> List[ChangelogEntry]:
        return await self.changelog.get_status_entries(now)

    async def get_timeline(self, criteria: Optional[MilestoneFilter] = None, now: Optional[datetime] = None) -> List[TimelineMilestone]:
        """Filtered milestones across all projects, soonest due first."""
        snapshot = await self.get_snapshot()
        milestones = flatten_milestones(snapshot.projects)
        return sort_by_due(filter_milestones(milestones, criteria or MilestoneFilter(), now))
