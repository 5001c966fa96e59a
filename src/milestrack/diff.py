"""
Snapshot differ.

Explains the difference between two snapshots as a list of ChangeEvents.
Only whole-project additions and status/progress transitions are reported;
a milestone that appears inside an existing project produces no event.
"""
from typing import Dict, List

from .models import (
    ChangeEvent, ChangeKind, Milestone, MilestoneStatus, Project, Snapshot,
)


def _index(items) -> Dict[str, object]:
    # First occurrence wins on repeated ids
    index = {}
    for item in items:
        index.setdefault(item.id, item)
    return index


def _milestone_events(new_project: Project, old_project: Project) -> List[ChangeEvent]:
    events = []
    old_milestones = _index(old_project.milestones)

    for milestone in new_project.milestones:
        previous: Milestone = old_milestones.get(milestone.id)
        if previous is None:
            continue

        if previous.status != milestone.status:
            if milestone.status == MilestoneStatus.COMPLETED:
                events.append(ChangeEvent(
                    kind=ChangeKind.MILESTONE_COMPLETED,
                    title=f"{milestone.title} Completed",
                    description=f'Milestone "{milestone.title}" for {new_project.name} has been completed',
                    project_id=new_project.id,
                    milestone_id=milestone.id,
                ))
            elif milestone.status == MilestoneStatus.DELAYED:
                events.append(ChangeEvent(
                    kind=ChangeKind.MILESTONE_DELAYED,
                    title=f"{milestone.title} Delayed",
                    description=f'Milestone "{milestone.title}" for {new_project.name} has been delayed',
                    project_id=new_project.id,
                    milestone_id=milestone.id,
                ))

        if previous.progress != milestone.progress:
            events.append(ChangeEvent(
                kind=ChangeKind.UPDATED,
                title=f"{milestone.title} Progress Updated",
                description=f"Progress updated from {previous.progress}% to {milestone.progress}%",
                project_id=new_project.id,
                milestone_id=milestone.id,
            ))

    return events


def _project_events(new_project: Project, old_project: Project) -> List[ChangeEvent]:
    events = _milestone_events(new_project, old_project)

    if old_project.status != new_project.status:
        events.append(ChangeEvent(
            kind=ChangeKind.UPDATED,
            title=f"{new_project.name} Status Changed",
            description=f"Project status changed from {old_project.status.value} to {new_project.status.value}",
            project_id=new_project.id,
        ))

    if old_project.progress != new_project.progress:
        events.append(ChangeEvent(
            kind=ChangeKind.UPDATED,
            title=f"{new_project.name} Progress Updated",
            description=f"Overall progress updated from {old_project.progress}% to {new_project.progress}%",
            project_id=new_project.id,
        ))

    return events


def diff_snapshots(new: Snapshot, old: Snapshot) -> List[ChangeEvent]:
    """
    Compute the change events that lead from ``old`` to ``new``.

    Events are grouped by detection phase: every ``project_added`` event
    first, then per common project its milestone transitions, its status
    change and its progress change. The function is pure and deterministic.
    """
    old_projects = _index(old.projects)
    new_projects = list(_index(new.projects).values())

    events = [
        ChangeEvent(
            kind=ChangeKind.PROJECT_ADDED,
            title=f"{project.name} Added",
            description=f'New project "{project.name}" has been added to the ecosystem',
            project_id=project.id,
        )
        for project in new_projects
        if project.id not in old_projects
    ]

    for project in new_projects:
        previous = old_projects.get(project.id)
        if previous is not None:
            events.extend(_project_events(project, previous))

    return events
