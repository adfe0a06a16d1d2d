"""End-to-end demo: open a timestamp-update pull request as the GitHub App.

Exercises everything an automation built on ghapp needs:

1. Load the App's private key (inline, file, or Secret Manager)
2. Read the installation id, or discover it and store it for next time
3. Authenticate and smoke-test the installation token
4. Close any previous timestamp-update PRs
5. Clone, branch, rewrite ``timestamp.txt``, commit and push
6. Open a PR against the repository's default branch

Replace steps 4-6 with real business logic in production.
"""

import logging
import random
import shutil
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ghapp import git
from ghapp.core.config import Settings
from ghapp.core.exceptions import GitHubAppError, InvalidInput, SecretStoreError
from ghapp.github import client
from ghapp.github.auth import authenticate, verify
from ghapp.github.client import GitHubApi
from ghapp.github.exchange import parse_installation_id
from ghapp.github.installations import resolve_installation
from ghapp.github.schemas import InstallationToken, PullRequest
from ghapp.github.signer import PrivateKeySource
from ghapp.secrets import add_secret_version, installation_id_from_settings, private_key_from_settings

logger = logging.getLogger(__name__)

TIMESTAMP_FILE = "timestamp.txt"
BRANCH_PREFIX = "timestamp-update-"
PR_TITLE_MARKER = "timestamp update"
# When the schedule template moved from every 5 minutes to hourly.
TEMPLATE_CHANGE_TIME = "2025-08-12T16:30:00Z"


@dataclass
class DemoResult:
    installation_id: int
    discovered: bool
    branch: str
    pull_request: PullRequest
    closed: list[int] = field(default_factory=list)


def branch_name(now: datetime, suffix: Optional[int] = None) -> str:
    """``timestamp-update-YYYY-MM-DD-HH-MM-SS-NNNN``; the suffix avoids collisions."""
    if suffix is None:
        suffix = random.randint(1000, 9999)
    return f"{BRANCH_PREFIX}{now.strftime('%Y-%m-%d-%H-%M-%S')}-{suffix}"


def timestamp_content(created_at: str) -> str:
    return f"Template changed: {TEMPLATE_CHANGE_TIME}\nPR created: {created_at}\n"


def obtain_installation_id(
    settings: Settings,
    private_key: PrivateKeySource,
    api: GitHubApi,
) -> tuple[int, bool]:
    """Return ``(installation_id, discovered)``.

    A discovered id is written back to Secret Manager when a secret is
    configured. Failing to store it only costs a rediscovery next run.
    """
    known = installation_id_from_settings(settings)
    if known:
        logger.info("Installation ID retrieved from configuration: %s", known)
        return parse_installation_id(known), False

    logger.info("Installation ID not configured; discovering it automatically")
    resolution = resolve_installation(
        settings.github_app_id, private_key, settings.github_repository, api=api
    )
    logger.info("Discovered installation ID: %s", resolution.installation_id)

    if settings.installation_id_secret and settings.project_id:
        try:
            add_secret_version(
                settings.installation_id_secret,
                settings.project_id,
                str(resolution.installation_id),
            )
        except SecretStoreError as exc:
            logger.warning(
                "Failed to store installation ID in Secret Manager, will rediscover next time: %s",
                exc,
            )
        else:
            logger.info("Stored installation ID in Secret Manager")
    return resolution.installation_id, True


def close_stale_pull_requests(
    token: InstallationToken,
    repository: str,
    api: GitHubApi,
) -> list[int]:
    """Close open PRs left by previous demo runs."""
    closed = []
    for pr in client.list_pull_requests(token.value, repository, state="open", api=api):
        if PR_TITLE_MARKER not in pr.title.lower():
            continue
        logger.info("Closing PR #%s", pr.number)
        client.close_pull_request(token.value, repository, pr.number, api=api)
        closed.append(pr.number)
    return closed


def push_timestamp_branch(
    settings: Settings,
    token: InstallationToken,
    branch: str,
    created_at: str,
) -> None:
    """Clone into a scratch directory, commit the timestamp file, push, clean up."""
    workspace = Path(tempfile.mkdtemp(prefix="ghapp-demo-"))
    try:
        repo_dir = workspace / "repo"
        remote = git.authenticated_url(settings.github_repository, token.value)
        git.clone(remote, repo_dir, token=token.value)
        git.configure_identity(repo_dir, settings.git_user_name, settings.git_user_email)

        # Leftover from a failed previous run with the same name.
        git.delete_remote_branch(repo_dir, branch, token=token.value)
        git.create_branch(repo_dir, branch)

        (repo_dir / TIMESTAMP_FILE).write_text(timestamp_content(created_at), encoding="utf-8")
        git.commit_all(
            repo_dir,
            [TIMESTAMP_FILE],
            f"Update timestamp - Template changed: {TEMPLATE_CHANGE_TIME}, PR created: {created_at}",
        )
        git.push(repo_dir, branch, token=token.value)
    finally:
        shutil.rmtree(workspace, ignore_errors=True)


def run_demo(settings: Settings) -> DemoResult:
    if not settings.github_app_id:
        raise InvalidInput("GITHUB_APP_ID is required")
    _, repo_name = client.split_repo(settings.github_repository)

    api = GitHubApi(base_url=settings.github_api_url, timeout=settings.http_timeout)
    logger.info(
        "Starting PR automation for %s (App ID %s)",
        settings.github_repository,
        settings.github_app_id,
    )

    private_key = private_key_from_settings(settings)
    installation_id, discovered = obtain_installation_id(settings, private_key, api)

    token = authenticate(settings.github_app_id, private_key, installation_id, api=api)
    logger.info(
        "GitHub App token retrieved (length: %d characters, expires in 1 hour)",
        len(token.value),
    )

    if not verify(token, settings.github_repository, api=api):
        raise GitHubAppError(f"Repository access test failed for {settings.github_repository}")

    repository = client.get_repository(token.value, settings.github_repository, api=api)
    logger.info("Default branch: %s", repository.default_branch)

    closed = close_stale_pull_requests(token, settings.github_repository, api)

    now = datetime.now(timezone.utc)
    created_at = now.strftime("%Y-%m-%dT%H:%M:%SZ")
    branch = branch_name(now)
    logger.info("Creating branch %s", branch)
    push_timestamp_branch(settings, token, branch, created_at)

    pull_request = client.create_pull_request(
        token.value,
        settings.github_repository,
        title=f"Automated timestamp update for {repo_name}",
        body=f"Automated timestamp update for {repo_name} - {created_at}",
        head_branch=branch,
        base_branch=repository.default_branch,
        api=api,
    )
    logger.info("PR created: %s", pull_request.html_url or f"#{pull_request.number}")

    return DemoResult(
        installation_id=installation_id,
        discovered=discovered,
        branch=branch,
        pull_request=pull_request,
        closed=closed,
    )
