"""Unit tests for the milestone query engine."""

import calendar
import pytest
from datetime import date, datetime

from milestrack.models import ProjectStatus
from milestrack.query import (
    MilestoneFilter, TimeRange, build_date_index, build_milestone_index,
    filter_milestones, filter_projects, flatten_milestones, group_by_month,
    has_milestones, is_overdue, milestones_on, month_key, project_categories,
    resolve_dependencies, sort_by_due, sorted_month_groups, status_counts,
    upcoming_milestones,
)


@pytest.fixture
def timeline(make_snapshot, project_data, milestone_data):
    """Milestones around the fixed instant 2024-05-15 (a Wednesday)."""
    snapshot = make_snapshot(
        project_data("omni", name="Omnibridge", category="Infrastructure", milestones=[
            milestone_data("omni-m1", status="completed", due="2024-05-01", progress=100),
            milestone_data("omni-m2", status="in-progress", due="2024-05-10"),
            milestone_data("omni-m3", status="pending", due="2024-05-13"),
            milestone_data("omni-m4", status="pending", due="2024-06-20", dependencies=["omni-m3", "ext-m9"]),
        ]),
        project_data("sdk", name="Agent SDK", category="SDK", milestones=[
            milestone_data("sdk-m1", status="delayed", due="2024-05-18"),
            milestone_data("sdk-m2", status="pending", due=""),
            milestone_data("sdk-m3", status="in-progress", due="2024-05-31"),
        ]),
    )
    return flatten_milestones(snapshot.projects)


def ids(items):
    return [m.id for m in items]


class TestFlatten:
    """Test flatten_milestones."""

    def test_annotations(self, timeline):
        assert len(timeline) == 7
        first = timeline[0]
        assert first.project_id == "omni"
        assert first.project_name == "Omnibridge"
        assert first.category == "Infrastructure"
        assert timeline[-1].project_name == "Agent SDK"


class TestFilterMilestones:
    """Test filter_milestones."""

    def test_no_criteria(self, timeline, now):
        assert filter_milestones(timeline, MilestoneFilter(), now) == timeline

    def test_project_filter(self, timeline, now):
        result = filter_milestones(timeline, MilestoneFilter(project="Agent SDK"), now)
        assert ids(result) == ["sdk-m1", "sdk-m2", "sdk-m3"]

    def test_exact_status(self, timeline, now):
        result = filter_milestones(timeline, MilestoneFilter(status="in-progress"), now)
        assert ids(result) == ["omni-m2", "sdk-m3"]

    def test_incomplete(self, timeline, now):
        result = filter_milestones(timeline, MilestoneFilter(status="incomplete"), now)
        assert ids(result) == ["omni-m2", "omni-m3", "omni-m4", "sdk-m2", "sdk-m3"]

    def test_overdue(self, timeline, now):
        """Past due and not completed; undated milestones are never overdue."""
        result = filter_milestones(timeline, MilestoneFilter(status="overdue"), now)
        assert ids(result) == ["omni-m2", "omni-m3"]

    def test_overdue_against_real_clock(self, make_snapshot, project_data, milestone_data):
        snapshot = make_snapshot(project_data("p", milestones=[
            milestone_data("old", status="pending", due="2020-01-01"),
            milestone_data("future", status="pending", due="2099-01-01"),
        ]))
        result = filter_milestones(flatten_milestones(snapshot.projects), MilestoneFilter(status="overdue"))
        assert ids(result) == ["old"]

    def test_due_today_is_overdue_after_midnight(self, timeline):
        """Due dates compare as midnight at the start of the due day."""
        (m3,) = [m for m in timeline if m.id == "omni-m3"]
        assert not is_overdue(m3, datetime(2024, 5, 13, 0, 0))
        assert is_overdue(m3, datetime(2024, 5, 13, 0, 1))

    def test_this_week_sunday_start(self, timeline, now):
        result = filter_milestones(timeline, MilestoneFilter(time_range=TimeRange.THIS_WEEK), now)
        # Week of Sunday 2024-05-12 through Saturday 2024-05-18
        assert ids(result) == ["omni-m3", "sdk-m1"]

    def test_this_week_monday_start(self, timeline, now):
        result = filter_milestones(
            timeline, MilestoneFilter(time_range=TimeRange.THIS_WEEK), now, first_weekday=calendar.MONDAY,
        )
        # Week of Monday 2024-05-13 through Sunday 2024-05-19
        assert ids(result) == ["omni-m3", "sdk-m1"]

        on_sunday = datetime(2024, 5, 12, 9, 0)
        result = filter_milestones(
            timeline, MilestoneFilter(time_range=TimeRange.THIS_WEEK), on_sunday, first_weekday=calendar.MONDAY,
        )
        # Week of Monday 2024-05-06 through Sunday 2024-05-12
        assert ids(result) == ["omni-m2"]

    def test_this_month(self, timeline, now):
        result = filter_milestones(timeline, MilestoneFilter(time_range=TimeRange.THIS_MONTH), now)
        assert ids(result) == ["omni-m1", "omni-m2", "omni-m3", "sdk-m1", "sdk-m3"]

    def test_next_month(self, timeline, now):
        result = filter_milestones(timeline, MilestoneFilter(time_range=TimeRange.NEXT_MONTH), now)
        assert ids(result) == ["omni-m4"]

    def test_next_month_wraps_year(self, make_snapshot, project_data, milestone_data):
        snapshot = make_snapshot(project_data("p", milestones=[
            milestone_data("jan", due="2025-01-31"),
            milestone_data("dec", due="2024-12-31"),
        ]))
        result = filter_milestones(
            flatten_milestones(snapshot.projects),
            MilestoneFilter(time_range=TimeRange.NEXT_MONTH),
            datetime(2024, 12, 3),
        )
        assert ids(result) == ["jan"]

    def test_past_due_matches_overdue(self, timeline, now):
        by_range = filter_milestones(timeline, MilestoneFilter(time_range=TimeRange.PAST_DUE), now)
        by_status = filter_milestones(timeline, MilestoneFilter(status="overdue"), now)
        both = filter_milestones(timeline, MilestoneFilter(status="overdue", time_range="past-due"), now)
        assert by_range == by_status == both

    def test_criteria_compose(self, timeline, now):
        criteria = MilestoneFilter(project="Omnibridge", status="incomplete", timeRange="this-month")
        assert ids(filter_milestones(timeline, criteria, now)) == ["omni-m2", "omni-m3"]

    def test_input_untouched(self, timeline, now):
        snapshot_ids = ids(timeline)
        filter_milestones(timeline, MilestoneFilter(status="overdue"), now)
        sort_by_due(timeline, reverse=True)
        assert ids(timeline) == snapshot_ids


class TestOrderingAndGrouping:
    """Test sorting, month grouping and the date index."""

    def test_sort_by_due(self, timeline):
        result = sort_by_due(timeline)
        assert ids(result) == ["omni-m1", "omni-m2", "omni-m3", "sdk-m1", "sdk-m3", "omni-m4", "sdk-m2"]
        assert ids(sort_by_due(timeline, reverse=True))[-1] == "sdk-m2"

    def test_upcoming(self, timeline, now):
        assert ids(upcoming_milestones(timeline, now)) == ["sdk-m1", "sdk-m3", "omni-m4"]

    def test_month_key(self):
        assert month_key(date(2024, 1, 5)) == "2024-1"
        assert month_key(date(2024, 1, 5), zero_pad=True) == "2024-01"
        assert month_key(date(2024, 11, 5), zero_pad=True) == "2024-11"

    def test_unpadded_keys_misorder_as_strings(self, make_snapshot, project_data, milestone_data):
        """Unpadded keys sort lexicographically out of calendar order; padded keys do not."""
        snapshot = make_snapshot(project_data("p", milestones=[
            milestone_data("nov", due="2024-11-04"),
            milestone_data("jan", due="2024-01-15"),
            milestone_data("feb", due="2024-02-20"),
        ]))
        items = flatten_milestones(snapshot.projects)

        unpadded = group_by_month(items)
        padded = group_by_month(items, zero_pad=True)

        assert sorted(unpadded) == ["2024-1", "2024-11", "2024-2"]
        assert sorted(padded) == ["2024-01", "2024-02", "2024-11"]
        assert [key for key, _ in sorted_month_groups(unpadded)] == ["2024-1", "2024-2", "2024-11"]

    def test_january_and_november_only(self, make_snapshot, project_data, milestone_data):
        """With only January and November the unpadded string order happens to hold."""
        snapshot = make_snapshot(project_data("p", milestones=[
            milestone_data("nov", due="2024-11-04"),
            milestone_data("jan", due="2024-01-15"),
        ]))
        items = flatten_milestones(snapshot.projects)

        assert sorted(group_by_month(items)) == ["2024-1", "2024-11"]
        assert sorted(group_by_month(items, zero_pad=True)) == ["2024-01", "2024-11"]

    def test_grouping_skips_undated(self, timeline):
        groups = group_by_month(timeline)
        assert set(groups) == {"2024-5", "2024-6"}
        assert sum(len(v) for v in groups.values()) == 6

    def test_date_index(self, make_snapshot, project_data, milestone_data):
        snapshot = make_snapshot(project_data("p", milestones=[
            milestone_data("a", due="2024-05-13"),
            milestone_data("b", due="2024-05-13"),
            milestone_data("c", due="2024-05-20"),
            milestone_data("d", due=""),
        ]))
        items = flatten_milestones(snapshot.projects)
        index = build_date_index(items)

        assert index[date(2024, 5, 13)].count == 2
        assert index[date(2024, 5, 13)].day == date(2024, 5, 13)
        assert index[date(2024, 5, 20)].count == 1
        assert has_milestones(index, date(2024, 5, 20))
        assert not has_milestones(index, date(2024, 5, 21))
        assert ids(milestones_on(items, date(2024, 5, 13))) == ["a", "b"]


class TestProjectQueries:
    """Test explorer filters, counts and dependency resolution."""

    @pytest.fixture
    def projects(self, make_snapshot, project_data, milestone_data):
        return make_snapshot(
            project_data("omni", name="Omnibridge", status="on-track", category="Infrastructure", nextMilestone="Mainnet Beta",
                         milestones=[milestone_data("omni-m1", title="Audit"), milestone_data("omni-m2", dependencies=["omni-m1", "nope-m3"])]),
            project_data("sdk", name="Agent SDK", status="at-risk", category="SDK", nextMilestone="API Docs"),
            project_data("wallet", name="Meteor", status="on-track", category="Grantee"),
        ).projects

    def test_search(self, projects):
        assert [p.id for p in filter_projects(projects, search="omni")] == ["omni"]
        assert [p.id for p in filter_projects(projects, search="api")] == ["sdk"]
        assert len(filter_projects(projects)) == 3

    def test_status_and_category(self, projects):
        assert [p.id for p in filter_projects(projects, status="on-track")] == ["omni", "wallet"]
        assert [p.id for p in filter_projects(projects, status="on-track", category="Grantee")] == ["wallet"]

    def test_categories_and_counts(self, projects):
        assert project_categories(projects) == ["Infrastructure", "SDK", "Grantee"]
        assert status_counts(projects) == {ProjectStatus.ON_TRACK: 2, ProjectStatus.AT_RISK: 1}

    def test_resolve_dependencies(self, projects):
        index = build_milestone_index(projects)
        dependent = projects[0].find_milestone("omni-m2")
        assert resolve_dependencies(dependent, index) == ["Audit", "nope-m3"]
