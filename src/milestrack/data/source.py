"""
Remote source for the projects document and its revision history.

All calls go through one ``httpx.AsyncClient``. Failures surface as
``FetchError`` (network, HTTP status) or ``CorruptionError`` (undecodable
payload); the exception is ``fetch_snapshot_at``, which degrades to None so a
single bad revision never aborts a changelog build.
"""
import base64
import binascii
import json
from typing import Any, Dict, List, Optional

import httpx

from milestrack.config import RepositoryConfig
from milestrack.models import GitHubIssue, Revision, Snapshot
from milestrack.recovery import CorruptionError, FetchError, MilestrackError
from milestrack.logs import get_logger

log = get_logger("source")


class GitHubSource:
    """Reads the projects document and its history from a GitHub repository."""

    def __init__(self, config: Optional[RepositoryConfig] = None, client: Optional[httpx.AsyncClient] = None):
        self.config = config or RepositoryConfig()
        self._client = client
        self._owns_client = client is None

    @property
    def headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout),
                follow_redirects=True,
            )
            self._owns_client = True
        return self._client

    async def aclose(self):
        if self._client is not None and self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    def _repo_url(self, suffix: str) -> str:
        return f"{self.config.api_base}/repos/{self.config.owner}/{self.config.repo}/{suffix}"

    async def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        try:
            response = await self._get_client().get(url, params=params, headers=self.headers)
        except httpx.HTTPError as e:
            raise FetchError(f"Request to {url} failed: {e}") from e
        if not response.is_success:
            raise FetchError(f"Request to {url} answered {response.status_code} {response.reason_phrase}")
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CorruptionError(f"Invalid JSON from {response.request.url}: {e}") from e

    async def fetch_document(self) -> Dict[str, Any]:
        """Fetch the current projects document through the contents API."""
        response = await self._get(
            self._repo_url(f"contents/{self.config.data_path}"),
            params={"ref": self.config.branch},
        )
        file_data = self._json(response)
        try:
            raw = base64.b64decode(file_data["content"])
            document = json.loads(raw.decode("utf-8"))
        except (KeyError, TypeError, binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CorruptionError(f"Cannot decode {self.config.data_path} content: {e}") from e
        if not isinstance(document, dict):
            raise CorruptionError(f"{self.config.data_path} does not hold an object")
        return document

    async def fetch_snapshot(self) -> Snapshot:
        return Snapshot.from_document(await self.fetch_document())

    async def fetch_revisions(self) -> List[Revision]:
        """Revisions of the projects document on the configured branch, newest first."""
        response = await self._get(
            self._repo_url("commits"),
            params={
                "sha": self.config.branch,
                "path": self.config.data_path,
                "per_page": self.config.per_page,
            },
        )
        payload = self._json(response)
        if not isinstance(payload, list):
            raise CorruptionError("Commit listing is not a list")

        revisions = []
        for entry in payload:
            try:
                revisions.append(Revision.from_github(entry))
            except CorruptionError as e:
                log.warning(f"Skipping revision: {e}")
        return revisions

    async def fetch_snapshot_at(self, sha: str) -> Optional[Snapshot]:
        """The projects document as it was at ``sha``, or None when it cannot be read."""
        url = f"{self.config.raw_base}/{self.config.owner}/{self.config.repo}/{sha}/{self.config.data_path}"
        try:
            response = await self._get(url)
            return Snapshot.from_document(self._json(response), revision=sha)
        except MilestrackError as e:
            log.warning(f"No snapshot for revision {sha[:7]}: {e}")
            return None

    async def fetch_issues(self) -> List[GitHubIssue]:
        """Issues labelled ``milestone``, open and closed."""
        response = await self._get(
            self._repo_url("issues"),
            params={"state": "all", "labels": "milestone"},
        )
        payload = self._json(response)
        if not isinstance(payload, list):
            raise CorruptionError("Issue listing is not a list")

        issues = []
        for entry in payload:
            try:
                issues.append(GitHubIssue.model_validate(entry))
            except ValueError as e:
                log.warning(f"Skipping malformed issue: {e}")
        return issues
