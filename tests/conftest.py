"""Shared fixtures for milestrack tests."""

import pytest
from datetime import datetime

from milestrack.models import Snapshot


def _project(project_id="p1", name=None, status="on-track", progress=50, milestones=None, **extra):
    data = {
        "id": project_id,
        "name": name or project_id.upper(),
        "category": extra.pop("category", "Infrastructure"),
        "status": status,
        "progress": progress,
        "team": ["Alice"],
        "dependencies": [],
        "milestones": milestones or [],
    }
    data.update(extra)
    return data


def _milestone(milestone_id="m1", title=None, status="pending", progress=0, due="2024-05-01", **extra):
    data = {
        "id": milestone_id,
        "title": title or f"Milestone {milestone_id}",
        "status": status,
        "progress": progress,
        "dueDate": due,
    }
    data.update(extra)
    return data


@pytest.fixture
def project_data():
    """Factory for raw project dicts in the remote document shape."""
    return _project


@pytest.fixture
def milestone_data():
    """Factory for raw milestone dicts in the remote document shape."""
    return _milestone


@pytest.fixture
def make_snapshot():
    """Build a Snapshot from raw project dicts."""
    def build(*projects, revision=None):
        return Snapshot.from_document({"projects": list(projects), "version": "1.0.0"}, revision=revision)
    return build


@pytest.fixture
def now():
    """A fixed evaluation instant: Wednesday 2024-05-15 12:00."""
    return datetime(2024, 5, 15, 12, 0, 0)
