"""
GitHub pull-request client.

Thin wrapper over the GitHub REST API, sent through the retry transport.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

import requests

from ..errors import HostingError
from ..models import APP_NAME, Project, Request
from ..providers.retry import RetryTransport

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
API_VERSION = "2022-11-28"

# Matches both git@github.com:owner/repo.git and https://github.com/owner/repo(.git)
REPO_URL_PATTERN = re.compile(r"github\.com[:/]([^/]+)/(.+?)(?:\.git)?/?$")


@dataclass(frozen=True)
class PullRequest:
    """An opened pull request."""
    number: int
    html_url: str


def parse_repo_url(repo_url: str) -> tuple[str, str]:
    """
    Extract (owner, repo) from a GitHub remote URL.

    Raises:
        HostingError: If the URL is not a GitHub repository URL
    """
    match = REPO_URL_PATTERN.search(repo_url.strip())
    if not match:
        raise HostingError(f"Cannot parse GitHub repo URL: {repo_url}")
    return match.group(1), match.group(2)


def build_pr_body(request: Request, summary: Optional[str]) -> str:
    """Pull request description with the change summary and request metadata."""
    lines = [
        "## Summary",
        "",
        summary or request.current_spec.description,
        "",
        "## Request",
        "",
        f"- **ID:** {request.id}",
        f"- **Spec version:** v{request.current_spec.version}",
        f"- **Attempts:** {len(request.attempts)}",
        "",
        "### Description",
        "",
        request.current_spec.description,
        "",
        "---",
        f"*Generated by {APP_NAME}*",
    ]
    return "\n".join(lines)


class GitHubClient:
    """
    Creates pull requests and enables auto-merge.

    Args:
        token: GitHub API token
        transport: Retry transport for HTTP calls
        api_url: API base URL (GitHub Enterprise uses a different host)
        merge_method: Merge method used for auto-merge
    """

    def __init__(
        self,
        token: str,
        transport: Optional[RetryTransport] = None,
        api_url: str = DEFAULT_API_URL,
        merge_method: str = "squash",
    ):
        self.token = token
        self.transport = transport or RetryTransport()
        self.api_url = api_url.rstrip("/")
        self.merge_method = merge_method

    def _headers(self) -> dict:
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.token}",
            "X-GitHub-Api-Version": API_VERSION,
        }

    def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        response = self.transport.request(
            method, f"{self.api_url}{endpoint}", headers=self._headers(), **kwargs
        )
        if not response.ok:
            raise HostingError(
                f"GitHub API error ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )
        if not response.content:
            return {}
        return response.json()

    def find_open_pull_request(self, repo_url: str, branch: str) -> Optional[PullRequest]:
        """An open pull request for ``branch``, if one exists."""
        owner, repo = parse_repo_url(repo_url)
        pulls = self._request(
            "GET",
            f"/repos/{owner}/{repo}/pulls",
            params={"head": f"{owner}:{branch}", "state": "open"},
        )
        if not pulls:
            return None
        return PullRequest(number=pulls[0]["number"], html_url=pulls[0]["html_url"])

    def create_pull_request(
        self,
        repo_url: str,
        branch: str,
        base_branch: str,
        title: str,
        body: str,
        draft: bool = True,
    ) -> PullRequest:
        """
        Open a pull request from ``branch`` into ``base_branch``.

        Raises:
            HostingError: If the API rejects the request
        """
        owner, repo = parse_repo_url(repo_url)
        data = self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls",
            json={
                "title": title,
                "body": body,
                "head": branch,
                "base": base_branch or "main",
                "draft": draft,
            },
        )
        pr = PullRequest(number=data["number"], html_url=data["html_url"])
        logger.info(f"Opened {'draft ' if draft else ''}PR #{pr.number}: {pr.html_url}")
        return pr

    def open_or_reuse(
        self,
        project: Project,
        request: Request,
        title: str,
        body: str,
        draft: bool,
    ) -> PullRequest:
        """Reuse the open pull request for the request branch, or create one."""
        existing = self.find_open_pull_request(project.repo, request.branch)
        if existing is not None:
            logger.info(f"Updated existing PR #{existing.number}")
            return existing
        return self.create_pull_request(
            repo_url=project.repo,
            branch=request.branch,
            base_branch=project.default_branch,
            title=title,
            body=body,
            draft=draft,
        )

    def enable_auto_merge(self, repo_url: str, pr_number: int) -> bool:
        """
        Merge the pull request with the configured method.

        Failures are logged, never raised.

        Returns:
            Whether the merge call succeeded
        """
        try:
            owner, repo = parse_repo_url(repo_url)
            self._request(
                "PUT",
                f"/repos/{owner}/{repo}/pulls/{pr_number}/merge",
                json={"merge_method": self.merge_method},
            )
        except (HostingError, requests.RequestException) as e:
            logger.warning(f"Could not enable auto-merge: {e}")
            return False
        return True
