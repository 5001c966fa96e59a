"""
Milestone query engine.

Filtering, grouping, sorting and indexing over milestone collections for the
calendar, timeline and explorer views. Every function returns a new derived
view and leaves its input untouched.
"""
import calendar
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field

from .models import (
    DateBucket, Milestone, MilestoneStatus, Project, ProjectStatus, TimelineMilestone,
)

ALL = "all"
INCOMPLETE = "incomplete"
OVERDUE = "overdue"

class TimeRange(Enum):
    ALL = "all"
    THIS_WEEK = "this-week"
    THIS_MONTH = "this-month"
    NEXT_MONTH = "next-month"
    PAST_DUE = "past-due"

class MilestoneFilter(BaseModel):
    """Filter criteria for the flattened milestone collection."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    project: str = Field(default=ALL, description="Exact project name, or 'all'")
    status: str = Field(default=ALL, description="Milestone status, 'incomplete', 'overdue' or 'all'")
    time_range: TimeRange = Field(default=TimeRange.ALL, alias="timeRange")


def flatten_milestones(projects: Iterable[Project]) -> List[TimelineMilestone]:
    """Lift every milestone out of its project, annotated with the owner's id, name and category."""
    return [
        TimelineMilestone(
            **milestone.model_dump(),
            project_id=project.id,
            project_name=project.name,
            category=project.category,
        )
        for project in projects
        for milestone in project.milestones
    ]


def _due_start(day: date, now: datetime) -> datetime:
    return datetime.combine(day, time.min, tzinfo=now.tzinfo)


def is_overdue(milestone: Milestone, now: Optional[datetime] = None) -> bool:
    """Due strictly before ``now`` and not completed; undated milestones are never overdue."""
    now = now or datetime.now()
    if milestone.due_date is None or milestone.status == MilestoneStatus.COMPLETED:
        return False
    return _due_start(milestone.due_date, now) < now


def _month_bounds(year: int, month: int) -> Tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def _range_bounds(time_range: TimeRange, today: date, first_weekday: int) -> Tuple[date, date]:
    if time_range == TimeRange.THIS_WEEK:
        start = today - timedelta(days=(today.weekday() - first_weekday) % 7)
        return start, start + timedelta(days=6)
    if time_range == TimeRange.THIS_MONTH:
        return _month_bounds(today.year, today.month)
    if time_range == TimeRange.NEXT_MONTH:
        if today.month == 12:
            return _month_bounds(today.year + 1, 1)
        return _month_bounds(today.year, today.month + 1)
    raise ValueError(f"Time range {time_range.value} has no calendar bounds")


def _matches_status(milestone: Milestone, status: str, now: datetime) -> bool:
    if status == ALL:
        return True
    if status == INCOMPLETE:
        return milestone.status in (MilestoneStatus.IN_PROGRESS, MilestoneStatus.PENDING)
    if status == OVERDUE:
        return is_overdue(milestone, now)
    return milestone.status.value == status


def _matches_time_range(milestone: Milestone, time_range: TimeRange, now: datetime, first_weekday: int) -> bool:
    if time_range == TimeRange.ALL:
        return True
    if time_range == TimeRange.PAST_DUE:
        return is_overdue(milestone, now)
    if milestone.due_date is None:
        return False
    start, end = _range_bounds(time_range, now.date(), first_weekday)
    return start <= milestone.due_date <= end


def filter_milestones(
    milestones: Iterable[TimelineMilestone],
    criteria: MilestoneFilter,
    now: Optional[datetime] = None,
    first_weekday: int = calendar.SUNDAY,
) -> List[TimelineMilestone]:
    """
    Select the milestones matching every criterion, in their original order.

    Args:
        milestones: Flattened milestone collection.
        criteria: Project, status and time range filters, combined with AND.
        now: Evaluation instant; defaults to the current local time.
        first_weekday: First day of the week for 'this-week' (``calendar`` constants).
    """
    now = now or datetime.now()
    return [
        m for m in milestones
        if (criteria.project == ALL or m.project_name == criteria.project)
        and _matches_status(m, criteria.status, now)
        and _matches_time_range(m, criteria.time_range, now, first_weekday)
    ]


def sort_by_due(milestones: Iterable[Milestone], reverse: bool = False) -> List[Milestone]:
    """Order by due date; undated milestones always go last."""
    items = list(milestones)
    dated = sorted((m for m in items if m.due_date is not None), key=lambda m: m.due_date, reverse=reverse)
    return dated + [m for m in items if m.due_date is None]


def upcoming_milestones(milestones: Iterable[Milestone], now: Optional[datetime] = None) -> List[Milestone]:
    """Milestones due today or later, soonest first."""
    today = (now or datetime.now()).date()
    return sort_by_due(m for m in milestones if m.due_date is not None and m.due_date >= today)


def month_key(day: date, zero_pad: bool = False) -> str:
    """Year-month group key. The unpadded form ('2024-1') does not sort chronologically as a string."""
    if zero_pad:
        return f"{day.year}-{day.month:02d}"
    return f"{day.year}-{day.month}"


def group_by_month(milestones: Iterable[Milestone], zero_pad: bool = False) -> Dict[str, List[Milestone]]:
    """Group dated milestones by year and month of their due date, in first-seen key order."""
    groups: Dict[str, List[Milestone]] = {}
    for milestone in milestones:
        if milestone.due_date is None:
            continue
        groups.setdefault(month_key(milestone.due_date, zero_pad), []).append(milestone)
    return groups


def _key_order(key: str) -> Tuple[int, int]:
    year, month = key.split('-')
    return int(year), int(month)


def sorted_month_groups(groups: Dict[str, List[Milestone]]) -> List[Tuple[str, List[Milestone]]]:
    """Month groups in chronological order, whichever key form was used."""
    return sorted(groups.items(), key=lambda item: _key_order(item[0]))


def build_date_index(milestones: Iterable[Milestone]) -> Dict[date, DateBucket]:
    """Map each due date to how many milestones fall on it."""
    counts: Dict[date, int] = {}
    for milestone in milestones:
        if milestone.due_date is not None:
            counts[milestone.due_date] = counts.get(milestone.due_date, 0) + 1
    return {day: DateBucket(count=count, day=day) for day, count in counts.items()}


def has_milestones(index: Dict[date, DateBucket], day: date) -> bool:
    return day in index


def milestones_on(milestones: Iterable[Milestone], day: date) -> List[Milestone]:
    return [m for m in milestones if m.due_date == day]


def filter_projects(
    projects: Iterable[Project],
    search: str = "",
    status: str = ALL,
    category: str = ALL,
) -> List[Project]:
    """Explorer filter: search over name and next milestone, exact status and category."""
    term = search.lower()
    return [
        p for p in projects
        if (term in p.name.lower() or term in (p.next_milestone or "").lower())
        and (status == ALL or p.status.value == status)
        and (category == ALL or p.category == category)
    ]


def project_categories(projects: Iterable[Project]) -> List[str]:
    """Distinct categories in first-seen order."""
    return list(dict.fromkeys(p.category for p in projects))


def status_counts(projects: Iterable[Project]) -> Dict[ProjectStatus, int]:
    counts: Dict[ProjectStatus, int] = {}
    for project in projects:
        counts[project.status] = counts.get(project.status, 0) + 1
    return counts


def build_milestone_index(projects: Iterable[Project]) -> Dict[str, Milestone]:
    index: Dict[str, Milestone] = {}
    for project in projects:
        for milestone in project.milestones:
            index.setdefault(milestone.id, milestone)
    return index


def resolve_dependencies(milestone: Milestone, index: Dict[str, Milestone]) -> List[str]:
    """Titles of the milestones this one depends on; unknown ids are returned as-is."""
    return [index[dep].title if dep in index else dep for dep in milestone.dependencies]
