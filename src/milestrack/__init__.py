"""
milestrack - milestone tracking data layer.

Parses milestone documents, diffs project snapshots into change events,
assembles changelogs from revision history and answers calendar/timeline
queries over the milestone collection.
"""

from .version import VERSION
from .models import (
    ProjectStatus,
    MilestoneStatus,
    ChangeKind,
    MilestoneRef,
    Milestone,
    Project,
    Snapshot,
    Revision,
    ChangeEvent,
    ChangelogEntry,
    TimelineMilestone,
)
from .parser import parse_milestones
from .diff import diff_snapshots
from .changelog import assemble_changelog, classify_message, ChangelogService
from .query import MilestoneFilter, TimeRange, filter_milestones
from .cache import TTLCache
from .data import DataCore

__version__ = VERSION

__all__ = [
    "VERSION",
    "ProjectStatus",
    "MilestoneStatus",
    "ChangeKind",
    "MilestoneRef",
    "Milestone",
    "Project",
    "Snapshot",
    "Revision",
    "ChangeEvent",
    "ChangelogEntry",
    "TimelineMilestone",
    "parse_milestones",
    "diff_snapshots",
    "assemble_changelog",
    "classify_message",
    "ChangelogService",
    "MilestoneFilter",
    "TimeRange",
    "filter_milestones",
    "TTLCache",
    "DataCore",
]
