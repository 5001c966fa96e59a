"""
Milestone document parser.

Turns a loosely structured markdown document (one ``##``/``###`` heading per
milestone) into completed Milestone records. The parser never raises on
document content: anything it does not recognise is skipped.
"""
import re
from datetime import date
from typing import Dict, List, Optional, Tuple

from .models import Milestone, MilestoneRef, MilestoneStatus
from .logs import get_logger

log = get_logger("parser")

HEADING_PREFIXES = ('## ', '### ')
HEADING_MARKER = re.compile(r'^#+\s+')
DUE_DATE_PATTERN = re.compile(r'due[:\s]+(\d{4}-\d{2}-\d{2})', re.IGNORECASE)
PERCENT_PATTERN = re.compile(r'(\d+)%')
LINK_PATTERN = re.compile(r'\[([^\]]+)\]\(([^)]+)\)')
GITHUB_PATTERN = re.compile(r'github[:\s]+(\S+)', re.IGNORECASE)
GITHUB_URL_PATTERN = re.compile(r'github\.com/([^/]+)/([^/]+)')

# (markers, lowercase phrases, resulting status); first rule hit on a line wins
STATUS_SIGNALS = (
    (("✅",), ("completed",), MilestoneStatus.COMPLETED),
    (("\U0001F6A7",), ("in progress", "in-progress"), MilestoneStatus.IN_PROGRESS),
    (("⚠️", "⚠"), ("delayed",), MilestoneStatus.DELAYED),
)
GRANT_MARKER = "\U0001F4B0"

DESCRIPTION_SECTIONS = ("description",)
DEFINITION_SECTIONS = ("definition", "done", "acceptance")
DEPENDENCY_SECTIONS = ("dependencies", "depends")


class _Draft:
    """Fields collected for the milestone currently being read."""

    def __init__(self, title: str):
        self.title = title
        self.status = MilestoneStatus.PENDING
        self.due_date: Optional[date] = None
        self.progress = 0
        self.description = ""
        self.definition_of_done = ""
        self.is_grant_milestone = False
        self.dependencies: List[str] = []
        self.links: Dict[str, str] = {}

    def complete(self, project_id: str, position: int) -> Milestone:
        return Milestone(
            id=MilestoneRef.format(project_id, position + 1),
            title=self.title,
            status=self.status,
            due_date=self.due_date,
            progress=min(max(self.progress, 0), 100),
            description=self.description.strip(),
            definition_of_done=self.definition_of_done.strip(),
            is_grant_milestone=self.is_grant_milestone,
            dependencies=list(self.dependencies),
            links=dict(self.links),
        )


def _status_signal(line: str) -> Optional[MilestoneStatus]:
    lowered = line.lower()
    for markers, phrases, status in STATUS_SIGNALS:
        if any(m in line for m in markers) or any(p in lowered for p in phrases):
            return status
    return None


def _is_body_text(line: str) -> bool:
    return bool(line) and not line.startswith('**') and not line.startswith('#')


def parse_milestones(content: str, project_id: str) -> List[Milestone]:
    """
    Parse a milestones document into Milestone records for ``project_id``.

    Args:
        content: Raw document text.
        project_id: Owner used to generate ``<project_id>-m<N>`` identifiers.

    Returns:
        Milestones in document order; empty when the document has no headings.
    """
    milestones: List[Milestone] = []
    current: Optional[_Draft] = None
    section = ''

    for raw_line in content.split('\n'):
        line = raw_line.strip()

        if line.startswith(HEADING_PREFIXES):
            if current is not None and current.title:
                milestones.append(current.complete(project_id, len(milestones)))
            current = _Draft(HEADING_MARKER.sub('', line, count=1))
            section = ''
            continue

        if current is None:
            continue

        status = _status_signal(line)
        if status is not None:
            current.status = status
            if status == MilestoneStatus.COMPLETED:
                current.progress = 100

        due_match = DUE_DATE_PATTERN.search(line)
        if due_match:
            try:
                current.due_date = date.fromisoformat(due_match.group(1))
            except ValueError:
                log.debug(f"Ignoring impossible due date '{due_match.group(1)}' in '{current.title}'")

        percent_match = PERCENT_PATTERN.search(line)
        if percent_match:
            current.progress = int(percent_match.group(1))

        if 'grant milestone' in line.lower() or GRANT_MARKER in line:
            current.is_grant_milestone = True

        if line.startswith('**') or line.startswith('###'):
            section = line.lower()

        if any(s in section for s in DESCRIPTION_SECTIONS) and _is_body_text(line):
            current.description += ' ' + line

        if any(s in section for s in DEFINITION_SECTIONS) and _is_body_text(line):
            current.definition_of_done += ' ' + line

        if any(s in section for s in DEPENDENCY_SECTIONS) and line.startswith('- '):
            current.dependencies.append(line[2:])

        link_match = LINK_PATTERN.search(line)
        if link_match:
            current.links[link_match.group(1).lower()] = link_match.group(2)

        github_match = GITHUB_PATTERN.search(line)
        if github_match:
            current.links['github'] = github_match.group(1)

    if current is not None and current.title:
        milestones.append(current.complete(project_id, len(milestones)))

    log.debug(f"Parsed {len(milestones)} milestone(s) for '{project_id}'")
    return milestones


def parse_github_url(url: str) -> Optional[Tuple[str, str]]:
    """Extract ``(owner, repo)`` from a GitHub URL, or None when it is not one."""
    match = GITHUB_URL_PATTERN.search(url)
    if not match:
        return None
    repo = match.group(2)
    if repo.endswith('.git'):
        repo = repo[:-len('.git')]
    return match.group(1), repo
