from __future__ import annotations

"""GitHub Development Activity Toolkit
=====================================

An Agno-compatible toolkit that measures the development activity behind a
project from the GitHub REST API.

- ``https://github.com/<owner>`` yields developer metrics: followers, public
  repositories, and stars and forks summed over up to 100 repositories
- ``https://github.com/<owner>/<repo>`` adds repository metrics: stars,
  forks, watchers, open issues, dates and commits over the last 4 weeks

GitHub computes commit statistics lazily and answers ``202 Accepted`` with an
empty body until they are ready; that case is reported as 0 recent commits.

## Environment Variables

- `GITHUB_TOKEN`: Optional token, raises the unauthenticated rate limit
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from agno.tools import Toolkit
from loguru import logger

from ...exceptions import StructuralUpstreamError
from ..base import BaseAPIToolkit, BaseDataToolkit
from ..utils import DataValidator, RetryPolicy
from ..utils.data_validator import CommitActivityWeek, GitHubRepo, GitHubRepoSummary, GitHubUser

__all__ = ["GitHubToolkit", "parse_github_url"]

GITHUB_ENDPOINT = "github"
GITHUB_API_URL = "https://api.github.com"
GITHUB_HOSTS = {"github.com", "www.github.com"}
RECENT_COMMIT_WEEKS = 4
INVALID_URL_ERROR = "Not a valid repository URL"


def parse_github_url(url: str) -> Optional[Dict[str, str]]:
    """Split a GitHub URL into owner and (optionally) repository.

    Returns:
        ``{"type": "user", "username": ...}``, ``{"type": "repo", "username": ..., "repo": ...}``
        or None for anything that is not a github.com profile or repository URL
    """
    if not url or not isinstance(url, str):
        return None

    url = url.replace("\x00", "").strip()
    if "://" not in url:
        url = f"https://{url}"

    parsed = urlparse(url)
    if parsed.netloc.lower() not in GITHUB_HOSTS:
        return None

    parts = [p for p in parsed.path.split("/") if p]
    if len(parts) == 1:
        return {"type": "user", "username": parts[0]}
    if len(parts) >= 2:
        repo = parts[1][:-4] if parts[1].endswith(".git") else parts[1]
        return {"type": "repo", "username": parts[0], "repo": repo}
    return None


class GitHubToolkit(Toolkit, BaseDataToolkit, BaseAPIToolkit):
    """GitHub Development Activity Toolkit"""

    _toolkit_category = "development"
    _toolkit_type = "repository"
    _toolkit_icon = "🐙"

    def __init__(
        self,
        github_token: str | None = None,
        api_url: str = GITHUB_API_URL,
        retry_policy: Optional[RetryPolicy] = None,
        data_dir: str | Path = "./data/github",
        http_client: Optional[Any] = None,
        http_timeout: float = 15.0,
        name: str = "github_toolkit",
        **kwargs: Any,
    ):
        """Initialize the GitHub Toolkit.

        Args:
            github_token: GitHub token. If None, reads GITHUB_TOKEN (optional).
            api_url: GitHub REST API base URL
            retry_policy: Backoff per request (default: github preset)
            data_dir: Directory for snapshots
            http_client: Shared DataHTTPClient
            http_timeout: HTTP request timeout in seconds
            name: Name identifier for this toolkit instance
            **kwargs: Additional arguments passed to Toolkit
        """
        self.github_token = github_token or os.getenv("GITHUB_TOKEN")
        self.api_url = api_url.rstrip("/")
        self._policy = retry_policy or RetryPolicy.preset("github")

        self._init_standard_configuration(http_timeout=http_timeout, http_client=http_client)

        available_tools = [
            self.analyze_github_repo,
            self.fetch_user_data,
            self.fetch_repo_data,
        ]

        super().__init__(name=name, tools=available_tools, **kwargs)

        self._init_data_helpers(data_dir, toolkit_name="github", source_tag="github")

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        if GITHUB_ENDPOINT not in self._http_client.get_endpoints():
            headers = {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            }
            if self.github_token:
                headers["Authorization"] = f"Bearer {self.github_token}"
            await self._http_client.add_endpoint(GITHUB_ENDPOINT, self.api_url, headers=headers)

        return await self._http_client.get(GITHUB_ENDPOINT, path, params=params, policy=self._policy)

    async def fetch_user_data(self, username: str) -> Dict[str, Any]:
        """Developer metrics for a GitHub user or organization.

        Args:
            username: GitHub login

        Returns:
            dict: Envelope with followers, public_repos, total_stars,
            total_forks and repos_count (repositories inspected, max 100)
        """
        try:
            user = DataValidator.parse(GitHubUser, await self._get(f"/users/{username}"), "github user")
            repos = DataValidator.parse_list(
                GitHubRepoSummary,
                await self._get(f"/users/{username}/repos", params={"per_page": 100}),
                "github repos",
            )
        except Exception as e:
            logger.error(f"Failed to fetch GitHub user {username}: {e}")
            return self.response_builder.exception_response(f"/users/{username}", e)

        return self.response_builder.success_response(data={
            "username": user.login,
            "followers": user.followers,
            "public_repos": user.public_repos,
            "total_stars": sum(r.stargazers_count for r in repos),
            "total_forks": sum(r.forks_count for r in repos),
            "repos_count": len(repos),
        })

    async def fetch_repo_data(self, owner: str, repo: str) -> Dict[str, Any]:
        """Repository metrics including commits over the last 4 weeks.

        Args:
            owner: Repository owner login
            repo: Repository name

        Returns:
            dict: Envelope with stars, forks, watchers, open_issues,
            created_at, updated_at and recent_commits
        """
        try:
            details = DataValidator.parse(GitHubRepo, await self._get(f"/repos/{owner}/{repo}"), "github repo")
            try:
                activity = await self._get(f"/repos/{owner}/{repo}/stats/commit_activity")
            except StructuralUpstreamError:
                # 202 and 204 answers may carry no JSON body
                activity = None
        except Exception as e:
            logger.error(f"Failed to fetch GitHub repo {owner}/{repo}: {e}")
            return self.response_builder.exception_response(f"/repos/{owner}/{repo}", e)

        stats_pending = not isinstance(activity, list)
        recent_commits = 0
        if not stats_pending:
            weeks = DataValidator.parse_items_lenient(CommitActivityWeek, activity, "github commit activity")
            recent_commits = sum(week.total for week in weeks[-RECENT_COMMIT_WEEKS:])

        return self.response_builder.success_response(data={
            "name": details.full_name,
            "description": details.description,
            "language": details.language,
            "stars": details.stargazers_count,
            "forks": details.forks_count,
            "watchers": details.watchers_count,
            "open_issues": details.open_issues_count,
            "created_at": details.created_at,
            "updated_at": details.updated_at,
            "recent_commits": recent_commits,
            "commit_stats_pending": stats_pending,
        })

    async def analyze_github_repo(self, url: str) -> Dict[str, Any]:
        """Analyze the GitHub presence behind a project URL.

        Args:
            url: Profile URL (``github.com/<owner>``) or repository URL
                (``github.com/<owner>/<repo>``)

        Returns:
            dict: Envelope with ``developer`` metrics, ``repository`` metrics
            (repository URLs only) and the original ``url``
        """
        parsed = parse_github_url(url)
        if parsed is None:
            return self.response_builder.error_response(INVALID_URL_ERROR, error_type="validation_error", url=url)

        username = parsed["username"]
        analysis: Dict[str, Any] = {"url": url}

        if parsed["type"] == "repo":
            repo_result = await self.fetch_repo_data(username, parsed["repo"])
            if not repo_result["success"]:
                return self.response_builder.error_response(
                    f"Failed to analyze repository: {repo_result['error']}",
                    error_type=repo_result.get("error_type", "api_error"),
                    url=url,
                )
            analysis["repository"] = repo_result["data"]

        user_result = await self.fetch_user_data(username)
        if not user_result["success"]:
            return self.response_builder.error_response(
                f"Failed to analyze repository: {user_result['error']}",
                error_type=user_result.get("error_type", "api_error"),
                data=analysis if "repository" in analysis else None,
                url=url,
            )
        analysis["developer"] = user_result["data"]

        logger.info(f"Analyzed GitHub {parsed['type']} {username}")
        return self.response_builder.success_response(data=analysis, data_source="github")

    async def aclose(self):
        """Close all HTTP clients and clean up resources."""
        await self._http_client.aclose()
        logger.debug("Closed GitHubToolkit and all clients")
