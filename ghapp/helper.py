"""Operator helpers for installation discovery.

Renders what an operator needs when onboarding repositories: a readable
summary of every installation, and the gcloud commands that seed each
repository's installation-id secret.
"""

import logging
from typing import Iterable, Optional

import httpx

from ghapp.core.exceptions import GitHubAppError
from ghapp.github.client import DEFAULT_API, GitHubApi
from ghapp.github.installations import InstallationSummary, find_installation_for_repo
from ghapp.github.signer import PrivateKeySource
from ghapp.secrets import add_secret_command

logger = logging.getLogger(__name__)


def format_summary(app_id: str, summaries: list[InstallationSummary]) -> str:
    lines = ["=== GitHub App Installation Summary ===", f"App ID: {app_id}", ""]
    for summary in summaries:
        lines.append(f"Installation ID: {summary.installation_id}")
        if summary.error is not None:
            lines.append("  Failed to fetch repositories")
        else:
            lines.append("  Repositories:")
            lines.extend(f"    - {repo}" for repo in summary.repositories)
        lines.append("")
    return "\n".join(lines)


def _qualify(repo: str, owner: Optional[str]) -> Optional[str]:
    if "/" in repo:
        return repo
    if not owner:
        return None
    return f"{owner}/{repo}"


def generate_secret_commands(
    app_id: str,
    private_key: PrivateKeySource,
    project_id: str,
    repos: Iterable[str],
    owner: Optional[str] = None,
    api: GitHubApi = DEFAULT_API,
) -> str:
    """One ``gcloud secrets versions add`` command per resolvable repository.

    Bare repository names are qualified with *owner*. Repositories that
    cannot be resolved produce a comment line instead of a command.
    """
    lines = []
    for repo in repos:
        full_name = _qualify(repo, owner)
        if full_name is None:
            logger.warning("GITHUB_OWNER not set and repository %r doesn't include owner", repo)
            continue

        try:
            installation_id = find_installation_for_repo(app_id, private_key, full_name, api=api)
        except (GitHubAppError, httpx.HTTPError) as exc:
            logger.error("Could not find installation ID for %s: %s", full_name, exc)
            lines.append(f"# ERROR: Could not find installation ID for {full_name}")
            lines.append("")
            continue

        short_name = full_name.split("/", 1)[1]
        lines.append(f"# {full_name} (Installation ID: {installation_id})")
        lines.append(add_secret_command(f"{short_name}-installation-id", project_id, str(installation_id)))
        lines.append("")
    return "\n".join(lines)
