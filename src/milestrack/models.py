from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional, List, Dict, Tuple
import re

from .recovery import CorruptionError
from .logs import get_logger

log = get_logger("models")

class ProjectStatus(Enum):
    ON_TRACK = "on-track"
    AT_RISK = "at-risk"
    DELAYED = "delayed"
    COMPLETED = "completed"

class MilestoneStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    DELAYED = "delayed"

class ChangeKind(Enum):
    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"
    MILESTONE_COMPLETED = "milestone_completed"
    MILESTONE_DELAYED = "milestone_delayed"
    PROJECT_ADDED = "project_added"

KNOWN_LINK_CATEGORIES = ("github", "docs", "testnet", "examples", "auditReport")


def _coerce_date(v):
    """Read remote date values: blanks become None, timestamps keep their date part."""
    if v is None:
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, str):
        v = v.strip()
        if not v:
            return None
        if len(v) > 10 and v[10] in "T ":
            return v[:10]
    return v


def _read_date(value, where: str) -> Optional[date]:
    value = _coerce_date(value)
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        log.warning(f"{where}: ignoring invalid due date {value!r}")
        return None


def _read_progress(value, where: str) -> int:
    if value is None:
        return 0
    try:
        progress = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        log.warning(f"{where}: unreadable progress {value!r}, using 0")
        return 0
    clamped = min(max(progress, 0), 100)
    if clamped != value:
        log.debug(f"{where}: progress {value!r} read as {clamped}")
    return clamped


def _read_status(enum_type, value, default, where: str):
    if value is None:
        return default
    try:
        return enum_type(value)
    except (TypeError, ValueError):
        log.warning(f"{where}: unknown status {value!r}, using {default.value}")
        return default


def _read_fields(raw: Dict[str, Any], status_type, status_default, where: str) -> Dict[str, Any]:
    """Default the loosely typed fields of a remote record instead of rejecting it."""
    data = dict(raw)
    for key in ("dueDate", "due_date"):
        if key in data:
            data[key] = _read_date(data[key], where)
    if "progress" in data:
        data["progress"] = _read_progress(data["progress"], where)
    if "status" in data:
        data["status"] = _read_status(status_type, data["status"], status_default, where)
    return data


class MilestoneRef:
    """Utility class for the ``<projectId>-m<N>`` milestone identifier convention."""

    REF_PATTERN = re.compile(r'^(.+)-m(\d+)$')

    def __init__(self, ref: str):
        self.raw_ref = ref
        self.project_id = None
        self.index = None
        self._parse()

    def _parse(self):
        match = self.REF_PATTERN.match(self.raw_ref)
        if not match:
            raise ValueError(f"Invalid milestone reference: {self.raw_ref}")

        self.project_id = match.group(1)
        self.index = int(match.group(2))

    @classmethod
    def validate(cls, ref: str) -> bool:
        """Validate if a string follows the milestone identifier convention."""
        try:
            cls(ref)
            return True
        except ValueError:
            return False

    @staticmethod
    def format(project_id: str, index: int) -> str:
        """Build the identifier for the 1-based ``index``-th milestone of a project."""
        return f"{project_id}-m{index}"

    def __str__(self) -> str:
        return self.raw_ref


class Milestone(BaseModel):
    """A deliverable owned by exactly one project."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(description="Identifier, unique within the owning project")
    title: str = Field(description="Human readable milestone title")
    status: MilestoneStatus = Field(default=MilestoneStatus.PENDING, description="Current status of the milestone")
    due_date: Optional[date] = Field(default=None, alias="dueDate", description="Calendar date the milestone is due")
    progress: int = Field(default=0, ge=0, le=100, description="Completion percentage")
    description: str = Field(default="", description="Free text description")
    definition_of_done: str = Field(default="", alias="definitionOfDone", description="Acceptance criteria")
    is_grant_milestone: bool = Field(default=False, alias="isGrantMilestone", description="Funding-linked deliverable")
    dependencies: List[str] = Field(default_factory=list, description="Milestone or project identifiers this depends on")
    links: Dict[str, str] = Field(default_factory=dict, description="Link category to URL")

    @field_validator('id', mode='before')
    @classmethod
    def coerce_id(cls, v):
        # The remote document sometimes numbers milestones instead of naming them
        if isinstance(v, int):
            return str(v)
        return v

    @field_validator('due_date', mode='before')
    @classmethod
    def coerce_due_date(cls, v):
        return _coerce_date(v)

    @field_validator('description', 'definition_of_done', mode='before')
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v

    @field_validator('dependencies', mode='before')
    @classmethod
    def none_to_list(cls, v):
        return [] if v is None else v

    @classmethod
    def from_document(cls, raw: Any, where: str) -> Optional['Milestone']:
        """
        Read one milestone of the remote document, or None when it has no usable id or title.

        Unreadable due dates, progress values and statuses fall back to
        their defaults instead of rejecting the milestone.
        """
        if not isinstance(raw, dict):
            log.warning(f"{where}: skipping milestone that is not an object")
            return None

        data = _read_fields(raw, MilestoneStatus, MilestoneStatus.PENDING, where)
        links = data.get("links")
        if isinstance(links, dict):
            unknown = sorted(str(k) for k in links if k not in KNOWN_LINK_CATEGORIES)
            if unknown:
                log.debug(f"{where}: passing through link categories {', '.join(unknown)}")

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            log.warning(f"{where}: skipping invalid milestone: {e.error_count()} error(s)")
            log.debug(str(e))
            return None


class Project(BaseModel):
    """A tracked initiative and the milestones it owns."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(description="Unique identifier within a snapshot")
    name: str = Field(description="Display name")
    category: str = Field(default="", description="Grouping such as Infrastructure or SDK")
    status: ProjectStatus = Field(default=ProjectStatus.ON_TRACK, description="Overall project status")
    progress: int = Field(default=0, ge=0, le=100, description="Overall completion percentage")
    team: List[str] = Field(default_factory=list, description="Team member names, in display order")
    dependencies: List[str] = Field(default_factory=list, description="URLs, project ids or milestone ids")
    milestones: List[Milestone] = Field(default_factory=list, description="Milestones owned by the project")
    description: Optional[str] = Field(default=None)
    next_milestone: Optional[str] = Field(default=None, alias="nextMilestone")
    due_date: Optional[date] = Field(default=None, alias="dueDate")
    github_repo: Optional[str] = Field(default=None, alias="githubRepo")
    website: Optional[str] = Field(default=None)
    funding_type: Optional[str] = Field(default=None, alias="fundingType")
    last_updated: Optional[str] = Field(default=None, alias="lastUpdated")

    @field_validator('id', mode='before')
    @classmethod
    def coerce_id(cls, v):
        if isinstance(v, int):
            return str(v)
        return v

    @field_validator('due_date', mode='before')
    @classmethod
    def coerce_due_date(cls, v):
        return _coerce_date(v)

    @field_validator('team', 'dependencies', 'milestones', mode='before')
    @classmethod
    def none_to_list(cls, v):
        return [] if v is None else v

    def find_milestone(self, milestone_id: str) -> Optional[Milestone]:
        """Find a milestone by id."""
        return next((m for m in self.milestones if m.id == milestone_id), None)

    @classmethod
    def from_document(cls, raw: Any, where: str) -> 'Project':
        """
        Read one project of the remote document.

        Loosely typed fields are defaulted and bad milestones are dropped
        one by one, so only a missing id or name rejects the project.

        Raises:
            ValueError: If the record is not an object or lacks required fields.
        """
        if not isinstance(raw, dict):
            raise ValueError(f"{where}: project is not an object")

        data = _read_fields(raw, ProjectStatus, ProjectStatus.ON_TRACK, where)
        raw_milestones = data.get("milestones")
        if isinstance(raw_milestones, list):
            milestones = (
                Milestone.from_document(item, f"{where} milestone {index}")
                for index, item in enumerate(raw_milestones)
            )
            data["milestones"] = [m for m in milestones if m is not None]
        elif raw_milestones is not None:
            log.warning(f"{where}: 'milestones' is not a list, ignoring it")
            data["milestones"] = []

        return cls.model_validate(data)


class Snapshot(BaseModel):
    """One immutable, timestamped copy of the full project collection."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    projects: List[Project] = Field(default_factory=list)
    last_update: Optional[str] = Field(default=None, alias="lastUpdate")
    version: Optional[str] = Field(default=None)
    revision: Optional[str] = Field(default=None, description="Content hash the snapshot was read at")

    @classmethod
    def from_document(cls, document: Any, revision: Optional[str] = None) -> 'Snapshot':
        """
        Build a snapshot from the raw projects document.

        Each project is read on its own. Optional fields that cannot be read
        take their defaults; projects without an id or name and repeated ids
        are logged and skipped so one bad record never hides the rest.

        Raises:
            CorruptionError: If the document is not a mapping or ``projects`` is not a list.
        """
        if not isinstance(document, dict):
            raise CorruptionError(f"Projects document must be an object, got {type(document).__name__}")

        raw_projects = document.get("projects") or []
        if not isinstance(raw_projects, list):
            raise CorruptionError("Projects document field 'projects' must be a list")

        projects = []
        seen = set()
        for position, raw in enumerate(raw_projects):
            try:
                project = Project.from_document(raw, f"project {position}")
            except ValidationError as e:
                log.warning(f"Skipping invalid project at position {position}: {e.error_count()} error(s)")
                log.debug(str(e))
                continue
            except ValueError as e:
                log.warning(f"Skipping invalid project at position {position}: {e}")
                continue
            if project.id in seen:
                log.warning(f"Skipping duplicate project id '{project.id}'")
                continue
            seen.add(project.id)
            projects.append(project)

        last_update = document.get("lastUpdate")
        version = document.get("version")
        return cls(
            projects=projects,
            last_update=str(last_update) if last_update is not None else None,
            version=str(version) if version is not None else None,
            revision=revision,
        )

    def find_project(self, project_id: str) -> Optional[Project]:
        """Find a project by id."""
        return next((p for p in self.projects if p.id == project_id), None)


class Revision(BaseModel):
    """A content-versioning checkpoint of the projects document."""

    model_config = ConfigDict(frozen=True)

    sha: str = Field(description="Content hash")
    message: str = Field(default="", description="Free text commit message")
    date: datetime = Field(description="Committer timestamp")
    author: str = Field(default="", description="Author name")

    @property
    def short_sha(self) -> str:
        return self.sha[:7]

    @classmethod
    def from_github(cls, data: Dict[str, Any]) -> 'Revision':
        """
        Read one entry of the commits listing.

        Raises:
            CorruptionError: If required fields are missing.
        """
        try:
            commit = data["commit"]
            return cls(
                sha=data["sha"],
                message=commit.get("message") or "",
                date=commit["committer"]["date"],
                author=(commit.get("author") or {}).get("name") or "",
            )
        except (KeyError, TypeError, AttributeError, ValidationError) as e:
            raise CorruptionError(f"Malformed revision entry: {e}") from e


class ChangeEvent(BaseModel):
    """One classified difference between two snapshots, or one inference from a revision message."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    kind: ChangeKind = Field(alias="type")
    title: str
    description: str
    project_id: Optional[str] = Field(default=None, alias="projectId")
    milestone_id: Optional[str] = Field(default=None, alias="milestoneId")
    details: Dict[str, Any] = Field(default_factory=dict)


class ChangelogEntry(BaseModel):
    """A dated bundle of change events attributable to one revision or one synthetic comparison."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    date: datetime
    version: str
    changes: List[ChangeEvent] = Field(default_factory=list)
    commit_hash: Optional[str] = Field(default=None, alias="commitHash")
    commit_message: Optional[str] = Field(default=None, alias="commitMessage")
    author: Optional[str] = Field(default=None)


class TimelineMilestone(Milestone):
    """A milestone flattened out of its project, carrying the owner's identity."""

    project_id: str = Field(alias="projectId")
    project_name: str = Field(alias="projectName")
    category: str = Field(default="")


class DateBucket(BaseModel):
    """Calendar-cell decoration for one day."""

    model_config = ConfigDict(frozen=True)

    count: int
    day: date


class GitHubIssue(BaseModel):
    """A milestone-labelled issue on the remote repository."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    number: int
    title: str
    body: str = ""
    state: str = "open"
    labels: List[str] = Field(default_factory=list)
    assignees: List[str] = Field(default_factory=list)
    milestone: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator('body', mode='before')
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v

    @field_validator('labels', mode='before')
    @classmethod
    def label_names(cls, v):
        if v is None:
            return []
        return [item.get("name", "") if isinstance(item, dict) else item for item in v]

    @field_validator('assignees', mode='before')
    @classmethod
    def assignee_logins(cls, v):
        if v is None:
            return []
        return [item.get("login", "") if isinstance(item, dict) else item for item in v]
