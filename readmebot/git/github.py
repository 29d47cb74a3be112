"""GitHub REST client for pull requests, README contents and issue comments."""

from __future__ import annotations

import base64
import binascii
import json
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen

from ..errors import CommitConflict, CommitFailure, GitHubError
from ..logging import get_logger
from ..models import ChangedFile, CommitInfo, CommitOutcome, PullRequestContext, ReadmeFile

README_PATH = "README.md"
DIFF_MEDIA_TYPE = "application/vnd.github.v3.diff"
JSON_MEDIA_TYPE = "application/vnd.github+json"
_PAGE_SIZE = 100

_REPOSITORY_PATTERNS = (
    re.compile(r"github\.com[/:]([^/]+)/([^/]+?)(?:\.git)?/?$"),
    re.compile(r"^([^/\s]+)/([^/\s]+)$"),
)


@dataclass
class GitHubRequest:
    """A single HTTP exchange with the GitHub API."""

    method: str
    url: str
    headers: Dict[str, str]
    body: Optional[bytes] = None
    timeout: float = 30.0


@dataclass
class GitHubResponse:
    status: int
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)

    def json(self) -> Any:
        if not self.body:
            return None
        return json.loads(self.body.decode("utf-8"))

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


Transport = Callable[[GitHubRequest], GitHubResponse]


def parse_repository(value: str) -> tuple[str, str]:
    """Split ``owner/repo`` or a GitHub URL into its owner and repository name."""
    candidate = value.strip()
    for pattern in _REPOSITORY_PATTERNS:
        match = pattern.search(candidate)
        if match and match.group(1) and match.group(2):
            return match.group(1), match.group(2)
    raise ValueError(f"Invalid GitHub repository: {value}")


def _decode_content(encoded: str) -> str:
    if not encoded:
        return ""
    try:
        return base64.b64decode(encoded).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise GitHubError(f"{README_PATH} could not be decoded as UTF-8 text: {exc}") from exc


class GitHubClient:
    """Wraps the GitHub endpoints the sync pipeline consumes.

    Writes always go to the repository and branch passed in by the caller;
    for fork pull requests that is the head repository, not the base.
    """

    def __init__(
        self,
        token: str | None,
        *,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: Transport | None = None,
    ) -> None:
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport or self._urllib_transport
        self.logger = get_logger("github")

    # ------------------------------------------------------------------
    # Pull requests

    def get_pull_request(self, owner: str, repo: str, number: int) -> Dict[str, Any]:
        return self._get_json(f"/repos/{owner}/{repo}/pulls/{number}")

    def list_pull_files(self, owner: str, repo: str, number: int) -> List[Dict[str, Any]]:
        return self._paginate(f"/repos/{owner}/{repo}/pulls/{number}/files")

    def list_pull_commits(self, owner: str, repo: str, number: int) -> List[Dict[str, Any]]:
        return self._paginate(f"/repos/{owner}/{repo}/pulls/{number}/commits")

    def get_pull_diff(self, owner: str, repo: str, number: int) -> str:
        response = self._request(
            "GET", f"/repos/{owner}/{repo}/pulls/{number}", accept=DIFF_MEDIA_TYPE
        )
        return response.text()

    def fetch_pull_request(self, owner: str, repo: str, number: int) -> PullRequestContext:
        """Fetch metadata, changed files, commits and the diff concurrently."""
        with ThreadPoolExecutor(max_workers=4, thread_name_prefix="gh-fetch") as pool:
            pr_future = pool.submit(self.get_pull_request, owner, repo, number)
            files_future = pool.submit(self.list_pull_files, owner, repo, number)
            commits_future = pool.submit(self.list_pull_commits, owner, repo, number)
            diff_future = pool.submit(self.get_pull_diff, owner, repo, number)
            pr = pr_future.result()
            files = files_future.result()
            commits = commits_future.result()
            diff = diff_future.result()
        return self._build_context(owner, repo, pr, files, commits, diff)

    @staticmethod
    def _build_context(
        owner: str,
        repo: str,
        pr: Mapping[str, Any],
        files: List[Dict[str, Any]],
        commits: List[Dict[str, Any]],
        diff: str,
    ) -> PullRequestContext:
        try:
            head = pr["head"]
            base = pr["base"]
            head_repo = head.get("repo") or {}
            head_owner = (head_repo.get("owner") or {}).get("login")
            head_name = head_repo.get("name")
            if not head_owner or not head_name:
                raise GitHubError("Unable to determine head repository information from PR")
            return PullRequestContext(
                owner=owner,
                repo=repo,
                number=int(pr["number"]),
                title=pr.get("title") or "",
                description=pr.get("body") or "",
                base_branch=base["ref"],
                head_branch=head["ref"],
                head_owner=head_owner,
                head_repo=head_name,
                author=(pr.get("user") or {}).get("login", ""),
                files=[
                    ChangedFile(
                        filename=item["filename"],
                        status=item.get("status", ""),
                        additions=int(item.get("additions") or 0),
                        deletions=int(item.get("deletions") or 0),
                    )
                    for item in files
                ],
                commits=[
                    CommitInfo(
                        sha=item.get("sha", ""),
                        message=(item.get("commit") or {}).get("message", ""),
                        author=((item.get("commit") or {}).get("author") or {}).get("name")
                        or "Unknown",
                    )
                    for item in commits
                ],
                diff=diff,
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise GitHubError(f"Unexpected pull request payload: missing {exc}") from exc

    # ------------------------------------------------------------------
    # README contents

    def fetch_readme_file(self, owner: str, repo: str, ref: str | None = None) -> ReadmeFile:
        """Return README text and blob SHA; a missing README is an empty file without a SHA."""
        params = {"ref": ref} if ref else None
        try:
            data = self._get_json(f"/repos/{owner}/{repo}/contents/{README_PATH}", params=params)
        except GitHubError as exc:
            if exc.not_found:
                return ReadmeFile(text="", sha=None)
            raise
        if not isinstance(data, dict) or data.get("type") != "file":
            raise GitHubError(f"{README_PATH} is not a file")
        encoded = data.get("content") or ""
        encoding = data.get("encoding", "base64")
        size = int(data.get("size") or 0)
        sha = data.get("sha")
        if encoding != "base64" or (not encoded and size > 0):
            # Files over 1 MB come back without inline content.
            if not sha:
                raise GitHubError(f"{README_PATH} content unavailable and no blob SHA returned")
            encoded = self._get_blob_content(owner, repo, sha)
        return ReadmeFile(text=_decode_content(encoded), sha=sha)

    def _get_blob_content(self, owner: str, repo: str, sha: str) -> str:
        blob = self._get_json(f"/repos/{owner}/{repo}/git/blobs/{sha}")
        if not isinstance(blob, dict) or blob.get("encoding") != "base64":
            raise GitHubError(f"Unable to read {README_PATH} blob {sha}")
        content = blob.get("content") or ""
        if not content and int(blob.get("size") or 0) > 0:
            raise GitHubError(f"GitHub returned no content for {README_PATH} blob {sha}")
        return content

    def fetch_readme(self, owner: str, repo: str, ref: str | None = None) -> str:
        return self.fetch_readme_file(owner, repo, ref).text

    def write_readme(
        self,
        owner: str,
        repo: str,
        branch: str,
        text: str,
        *,
        message: str,
        prior_sha: str | None = None,
        suggestions_applied: int = 0,
    ) -> CommitOutcome:
        """Create or update README.md, conditional on ``prior_sha`` when one is given."""
        payload: Dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(text.encode("utf-8")).decode("ascii"),
            "branch": branch,
        }
        if prior_sha:
            payload["sha"] = prior_sha
        try:
            response = self._request(
                "PUT", f"/repos/{owner}/{repo}/contents/{README_PATH}", json_body=payload
            )
        except GitHubError as exc:
            if exc.status in {409, 422}:
                raise CommitConflict(
                    f"README.md on {owner}/{repo}@{branch} changed or the write was rejected: {exc}"
                ) from exc
            raise CommitFailure(f"Failed to commit README updates: {exc}") from exc

        commit = (response.json() or {}).get("commit") or {}
        url = commit.get("html_url")
        if not url:
            raise CommitFailure("Failed to get commit URL")
        return CommitOutcome(sha=commit.get("sha", ""), url=url, suggestions_applied=suggestions_applied)

    # ------------------------------------------------------------------
    # Comments

    def list_comments(self, owner: str, repo: str, number: int) -> List[Dict[str, Any]]:
        return self._paginate(f"/repos/{owner}/{repo}/issues/{number}/comments")

    def find_marker_comment(
        self, owner: str, repo: str, number: int, marker: str
    ) -> Dict[str, Any] | None:
        for comment in self.list_comments(owner, repo, number):
            body = comment.get("body") or ""
            if marker in body:
                return comment
        return None

    def create_comment(self, owner: str, repo: str, number: int, body: str) -> Dict[str, Any]:
        response = self._request(
            "POST", f"/repos/{owner}/{repo}/issues/{number}/comments", json_body={"body": body}
        )
        return response.json() or {}

    def update_comment(self, owner: str, repo: str, comment_id: int, body: str) -> Dict[str, Any]:
        response = self._request(
            "PATCH", f"/repos/{owner}/{repo}/issues/comments/{comment_id}", json_body={"body": body}
        )
        return response.json() or {}

    # ------------------------------------------------------------------
    # Helpers

    def _get_json(self, path: str, *, params: Mapping[str, Any] | None = None) -> Any:
        response = self._request("GET", path, params=params)
        try:
            return response.json()
        except json.JSONDecodeError as exc:
            raise GitHubError(f"GitHub returned invalid JSON for {path}") from exc

    def _paginate(self, path: str) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        page = 1
        while True:
            batch = self._get_json(path, params={"per_page": _PAGE_SIZE, "page": page})
            if not isinstance(batch, list):
                raise GitHubError(f"Expected a list from {path}")
            items.extend(batch)
            if len(batch) < _PAGE_SIZE:
                return items
            page += 1

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json_body: Mapping[str, Any] | None = None,
        accept: str = JSON_MEDIA_TYPE,
    ) -> GitHubResponse:
        url = f"{self.api_url}{quote(path)}"
        if params:
            url = f"{url}?{urlencode(params)}"
        headers = {
            "Accept": accept,
            "User-Agent": "readme-bot",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        body = None
        if json_body is not None:
            body = json.dumps(json_body).encode("utf-8")
            headers["Content-Type"] = "application/json"

        request = GitHubRequest(method=method, url=url, headers=headers, body=body, timeout=self.timeout)
        self.logger.debug("%s %s", method, url)
        response = self._transport(request)
        if response.status >= 400:
            raise GitHubError(
                f"{method} {path} failed with status {response.status}: {self._error_message(response)}",
                status=response.status,
            )
        return response

    @staticmethod
    def _error_message(response: GitHubResponse) -> str:
        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return response.text().strip()[:200]
        if isinstance(payload, dict) and payload.get("message"):
            return str(payload["message"])
        return response.text().strip()[:200]

    @staticmethod
    def _urllib_transport(request: GitHubRequest) -> GitHubResponse:
        http_request = Request(
            request.url, data=request.body, headers=request.headers, method=request.method
        )
        try:
            with urlopen(http_request, timeout=request.timeout) as response:  # type: ignore[arg-type]
                return GitHubResponse(
                    status=response.status,
                    body=response.read(),
                    headers=dict(response.headers.items()),
                )
        except HTTPError as exc:
            return GitHubResponse(
                status=exc.code,
                body=exc.read() if hasattr(exc, "read") else b"",
                headers=dict(exc.headers.items()) if exc.headers else {},
            )
        except URLError as exc:
            raise GitHubError(f"GitHub request failed: {exc.reason}") from exc
        except TimeoutError as exc:
            raise GitHubError("GitHub request timed out") from exc


__all__ = [
    "GitHubClient",
    "GitHubRequest",
    "GitHubResponse",
    "Transport",
    "parse_repository",
]
