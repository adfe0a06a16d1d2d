"""Git operations for the demo PR workflow.

Thin subprocess wrappers. An installation token authenticates
git-over-HTTPS as the ``x-access-token`` user. Any URL that carries it is
passed through `redact_url` before it reaches a log line or an exception
message.
"""

import logging
import subprocess
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse, urlunparse

from ghapp.core.exceptions import GitError

logger = logging.getLogger(__name__)

GITHUB_HOST = "github.com"


def redact_url(url: str) -> str:
    """Return a remote URL safe to write into logs.

    Masks embedded credentials (e.g. installation tokens) while preserving
    host/path context useful for debugging.
    """
    parsed = urlparse(url)
    if parsed.username is None:
        return url

    host = parsed.hostname or ""
    if not host:
        return url

    port = f":{parsed.port}" if parsed.port else ""
    if parsed.password is not None:
        auth = f"{parsed.username}:***@"
    else:
        auth = "***@"

    return urlunparse(parsed._replace(netloc=f"{auth}{host}{port}"))


def authenticated_url(repository: str, token: str, host: str = GITHUB_HOST) -> str:
    """HTTPS remote for *repository* authenticated with an installation token."""
    return f"https://x-access-token:{token}@{host}/{repository}.git"


def _git(
    args: list[str],
    cwd: Optional[Path] = None,
    timeout: int = 120,
    secret: Optional[str] = None,
) -> str:
    """Run ``git *args`` and return stdout. *secret* is scrubbed from errors."""
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError:
        raise GitError("git not found on PATH")
    except subprocess.TimeoutExpired:
        raise GitError(f"git {args[0]} timed out after {timeout}s")

    if result.returncode != 0:
        stderr = result.stderr.strip()
        if secret:
            stderr = stderr.replace(secret, "***")
        raise GitError(f"git {args[0]} failed (exit {result.returncode}): {stderr}")
    return result.stdout


def configure_identity(repo_dir: Path, name: str, email: str) -> None:
    """Set the committer identity for this clone only."""
    _git(["config", "user.name", name], cwd=repo_dir)
    _git(["config", "user.email", email], cwd=repo_dir)


def clone(remote_url: str, target_dir: Path, token: Optional[str] = None) -> Path:
    """Clone *remote_url* into *target_dir*."""
    logger.info("Cloning %s into %s", redact_url(remote_url), target_dir)
    _git(["clone", remote_url, str(target_dir)], timeout=300, secret=token)
    logger.info("Clone complete: %s", target_dir)
    return target_dir


def delete_remote_branch(repo_dir: Path, branch: str, token: Optional[str] = None) -> bool:
    """Delete *branch* on origin. Returns False when there was nothing to delete."""
    try:
        _git(["push", "origin", f":{branch}"], cwd=repo_dir, secret=token)
    except GitError as exc:
        logger.debug("Remote branch %s not deleted: %s", branch, exc)
        return False
    return True


def create_branch(repo_dir: Path, branch: str) -> None:
    _git(["checkout", "-b", branch], cwd=repo_dir)


def commit_all(repo_dir: Path, paths: list[str], message: str) -> None:
    """Stage *paths* and commit them."""
    _git(["add", "--", *paths], cwd=repo_dir)
    _git(["commit", "-m", message], cwd=repo_dir)


def push(repo_dir: Path, branch: str, token: Optional[str] = None) -> None:
    logger.info("Pushing branch %s", branch)
    _git(["push", "origin", branch], cwd=repo_dir, timeout=300, secret=token)
