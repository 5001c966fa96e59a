"""
Change-log assembly.

Combines the revision history of the projects document with snapshot diffs
and keyword heuristics over revision messages into dated ChangelogEntry
bundles. ``ChangelogService`` adds retrieval, caching and the fallback
changelog on top of the pure functions.
"""
import asyncio
import re
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from .cache import TTLCache
from .diff import diff_snapshots
from .models import (
    ChangeEvent, ChangeKind, ChangelogEntry, MilestoneStatus, Revision, Snapshot,
)
from .query import flatten_milestones
from .recovery import MilestrackError
from .logs import get_logger

log = get_logger("changelog")

CHANGELOG_CACHE_KEY = "changelog"
DEFAULT_REVISION_LIMIT = 10
RECENT_WINDOW_DAYS = 7
EMPTY_MESSAGE_PLACEHOLDER = "Project data has been updated"

VERSION_PATTERN = re.compile(r'v?(\d+\.\d+\.\d+)')

FALLBACK_ENTRY = {
    "id": "mock-1",
    "version": "2024.07.02",
    "changes": [
        {
            "type": "milestone_completed",
            "title": "Omnibridge Testnet Launch Completed",
            "description": "Successfully deployed Omnibridge on testnet with comprehensive testing completed",
            "projectId": "omnibridge",
            "milestoneId": "omnibridge-m4",
        },
        {
            "type": "updated",
            "title": "Project Progress Updated",
            "description": "Updated progress tracking for multiple projects based on latest developments",
        },
    ],
    "commitHash": "abc123f",
    "commitMessage": "Update milestone progress and project status",
    "author": "NEAR Team",
}


class ClassificationRule(NamedTuple):
    """Every group must match; a group matches when any of its substrings occurs."""
    groups: Tuple[Tuple[str, ...], ...]
    kind: ChangeKind
    title: str

CLASSIFICATION_RULES: Tuple[ClassificationRule, ...] = (
    ClassificationRule((("milestone",), ("complet", "finish")), ChangeKind.MILESTONE_COMPLETED, "Milestone Completed"),
    ClassificationRule((("project",), ("add", "new")), ChangeKind.PROJECT_ADDED, "New Project Added"),
    ClassificationRule((("delay", "postpone"),), ChangeKind.MILESTONE_DELAYED, "Milestone Delayed"),
)


def _matching_rules(message: str, rules: Sequence[ClassificationRule]) -> List[ClassificationRule]:
    text = message.lower()
    return [
        rule for rule in rules
        if all(any(word in text for word in group) for group in rule.groups)
    ]


def classify_message(message: str, rules: Sequence[ClassificationRule] = CLASSIFICATION_RULES) -> List[ChangeKind]:
    """Change kinds a free-text revision message suggests, in rule order."""
    return [rule.kind for rule in _matching_rules(message, rules)]


def heuristic_events(revision: Revision, rules: Sequence[ClassificationRule] = CLASSIFICATION_RULES) -> List[ChangeEvent]:
    return [
        ChangeEvent(
            kind=rule.kind,
            title=rule.title,
            description=revision.message,
            details={"commitHash": revision.short_sha},
        )
        for rule in _matching_rules(revision.message, rules)
    ]


def extract_version(revision: Revision) -> str:
    """Semantic version named in the message, else the revision date as YYYY.MM.DD."""
    match = VERSION_PATTERN.search(revision.message)
    if match:
        return match.group(1)
    return revision.date.strftime("%Y.%m.%d")


def revision_events(
    revision: Revision,
    current: Optional[Snapshot] = None,
    previous: Optional[Snapshot] = None,
    rules: Sequence[ClassificationRule] = CLASSIFICATION_RULES,
) -> List[ChangeEvent]:
    """
    Events for one revision.

    Message heuristics come first, then the diff against the predecessor when
    both snapshots are known. When neither fires, one generic update event is
    produced so the revision still shows up.
    """
    events = heuristic_events(revision, rules)

    if current is not None and previous is not None:
        tag = {"commitHash": revision.short_sha}
        events.extend(
            event.model_copy(update={"details": {**event.details, **tag}})
            for event in diff_snapshots(current, previous)
        )

    if not events:
        events.append(ChangeEvent(
            kind=ChangeKind.UPDATED,
            title="Data Updated",
            description=revision.message or EMPTY_MESSAGE_PLACEHOLDER,
            details={"commitHash": revision.short_sha},
        ))

    return events


def assemble_changelog(
    revisions: Sequence[Revision],
    snapshots: Mapping[str, Optional[Snapshot]],
    limit: int = DEFAULT_REVISION_LIMIT,
    rules: Sequence[ClassificationRule] = CLASSIFICATION_RULES,
) -> List[ChangelogEntry]:
    """
    Build changelog entries for the ``limit`` most recent revisions.

    Args:
        revisions: Revisions newest first.
        snapshots: Snapshot at each revision sha; missing or None means unknown.
        limit: How many revisions to examine.

    Returns:
        Entries sorted by date, newest first.
    """
    entries = []
    for position, revision in enumerate(revisions[:limit]):
        predecessor = revisions[position + 1] if position + 1 < len(revisions) else None
        current = snapshots.get(revision.sha)
        previous = snapshots.get(predecessor.sha) if predecessor is not None else None

        changes = revision_events(revision, current, previous, rules)
        entries.append(ChangelogEntry(
            id=revision.sha,
            date=revision.date,
            version=extract_version(revision),
            changes=changes,
            commit_hash=revision.short_sha,
            commit_message=revision.message,
            author=revision.author,
        ))

    return sorted(entries, key=lambda e: e.date, reverse=True)


def synthesize_status_entries(
    snapshot: Snapshot,
    now: Optional[datetime] = None,
    window_days: int = RECENT_WINDOW_DAYS,
) -> List[ChangelogEntry]:
    """
    Entries derived from the current snapshot alone.

    Completed milestones due within the trailing window are bundled into one
    "recently completed" entry; unfinished milestones due in the past into one
    "delayed" entry. Empty bundles are omitted. Both entries are dated ``now``.
    """
    now = now or datetime.now()
    today = now.date()
    window_start = today - timedelta(days=window_days)
    milestones = flatten_milestones(snapshot.projects)

    completed = [
        m for m in milestones
        if m.due_date is not None and m.status == MilestoneStatus.COMPLETED
        and window_start <= m.due_date <= today
    ]
    delayed = [
        m for m in milestones
        if m.due_date is not None and m.status != MilestoneStatus.COMPLETED
        and m.due_date < today
    ]

    version = now.strftime("%Y.%m.%d")
    entries = []
    if completed:
        entries.append(ChangelogEntry(
            id=f"recently-completed-{version}",
            date=now,
            version=version,
            changes=[
                ChangeEvent(
                    kind=ChangeKind.MILESTONE_COMPLETED,
                    title=f"{m.title} Completed",
                    description=f'Milestone "{m.title}" for {m.project_name} was completed',
                    project_id=m.project_id,
                    milestone_id=m.id,
                )
                for m in completed
            ],
        ))
    if delayed:
        entries.append(ChangelogEntry(
            id=f"delayed-{version}",
            date=now,
            version=version,
            changes=[
                ChangeEvent(
                    kind=ChangeKind.MILESTONE_DELAYED,
                    title=f"{m.title} Delayed",
                    description=f'Milestone "{m.title}" for {m.project_name} was due {m.due_date.isoformat()}',
                    project_id=m.project_id,
                    milestone_id=m.id,
                )
                for m in delayed
            ],
        ))
    return entries


def fallback_changelog(now: Optional[datetime] = None) -> List[ChangelogEntry]:
    """The fixed example changelog served when history cannot be retrieved."""
    return [ChangelogEntry.model_validate({**FALLBACK_ENTRY, "date": now or datetime.now()})]


class ChangelogService:
    """Retrieves revision history and serves the assembled changelog from a TTL cache.

    The service never raises to its caller: retrieval failures and empty
    histories yield the fallback changelog, which is not cached so the next
    call retries.
    """

    def __init__(
        self,
        source,
        cache: Optional[TTLCache] = None,
        limit: int = DEFAULT_REVISION_LIMIT,
        snapshot_provider: Optional[Callable[[], Awaitable[Snapshot]]] = None,
    ):
        self.source = source
        self.cache = cache or TTLCache(ttl=600)
        self.limit = limit
        # Reader for the current snapshot used by status entries
        self.snapshot_provider = snapshot_provider or source.fetch_snapshot

    async def _snapshots_for(self, revisions: Sequence[Revision]) -> Dict[str, Optional[Snapshot]]:
        # Each examined revision needs its predecessor too
        wanted = list(dict.fromkeys(r.sha for r in revisions[:self.limit + 1]))
        results = await asyncio.gather(*(self.source.fetch_snapshot_at(sha) for sha in wanted))
        return dict(zip(wanted, results))

    async def build(self) -> List[ChangelogEntry]:
        revisions = await self.source.fetch_revisions()
        snapshots = await self._snapshots_for(revisions)
        return assemble_changelog(revisions, snapshots, self.limit)

    async def get_changelog(self) -> List[ChangelogEntry]:
        cached = self.cache.get(CHANGELOG_CACHE_KEY)
        if cached is not None:
            return list(cached)

        try:
            changelog = await self.build()
        except MilestrackError as e:
            log.error(f"Error generating changelog: {e}")
            return fallback_changelog()
        except Exception as e:
            log.critical(f"Unexpected error generating changelog: {e}", exc_info=True)
            return fallback_changelog()

        if not changelog:
            log.warning("No revisions found for the projects document, serving fallback changelog")
            return fallback_changelog()

        self.cache.set(CHANGELOG_CACHE_KEY, changelog)
        log.info(f"Assembled changelog with {len(changelog)} entries")
        return list(changelog)

    async def get_status_entries(self, now: Optional[datetime] = None) -> List[ChangelogEntry]:
        """Synthetic entries from the current snapshot; empty when it cannot be fetched."""
        try:
            snapshot = await self.snapshot_provider()
        except MilestrackError as e:
            log.error(f"Error fetching current snapshot: {e}")
            return []
        return synthesize_status_entries(snapshot, now)
