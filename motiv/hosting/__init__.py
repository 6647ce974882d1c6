"""
Pull-request hosting.
"""

from .github import GitHubClient, PullRequest, build_pr_body, parse_repo_url

__all__ = ["GitHubClient", "PullRequest", "build_pr_body", "parse_repo_url"]
