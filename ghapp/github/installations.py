"""Installation discovery.

Finds which installation of the App governs a repository by listing the
App's installations and, for each one in listing order, the repositories
it can access. This is a linear scan with no caching; Apps typically have
only a handful of installations.

A failure while listing one installation's repositories does not abort
the scan. That installation is logged, counted as skipped, and the next
one is tried, so a single unreachable installation cannot block discovery
for the rest. The skipped count is reported on the result (and on
`NotFound`) so a systemic credential problem is still visible.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

import httpx

from ghapp.core.exceptions import GitHubAppError, MalformedResponse, NoInstallations, NotFound
from ghapp.github import client
from ghapp.github.auth import authenticate
from ghapp.github.client import DEFAULT_API, GitHubApi
from ghapp.github.exchange import parse_installation_id
from ghapp.github.schemas import Installation, InstallationRepositoriesPage, InstallationToken
from ghapp.github.signer import PrivateKeySource, sign

logger = logging.getLogger(__name__)

PAGE_SIZE = 100
# 10,000 items; well past what one App or installation sees.
MAX_PAGES = 100


@dataclass
class Resolution:
    """Which installation owns a repository, and how the scan went."""

    installation_id: int
    checked: int
    skipped: int


@dataclass
class InstallationSummary:
    installation_id: int
    repositories: list[str] = field(default_factory=list)
    error: Optional[str] = None


def _collect_pages(fetch: Callable[[int], tuple[list, Optional[int]]]) -> list:
    """Walk ``page=1..n`` until a short page or the reported total is reached.

    Also stops when a page repeats the previous one (a server ignoring
    ``page``) or after `MAX_PAGES`, so paging always terminates.
    """
    items: list = []
    previous: Optional[list] = None
    for page in range(1, MAX_PAGES + 1):
        batch, total = fetch(page)
        if batch and batch == previous:
            logger.warning("Page %d repeats page %d; stopping pagination", page, page - 1)
            return items
        items.extend(batch)
        if len(batch) < PAGE_SIZE:
            return items
        if total is not None and len(items) >= total:
            return items
        previous = batch
    logger.warning("Stopped pagination after %d pages", MAX_PAGES)
    return items


def list_installations(
    app_id: str,
    private_key: PrivateKeySource,
    api: GitHubApi = DEFAULT_API,
) -> list[int]:
    """Return the ids of every installation of the App, in listing order."""
    app_jwt = sign(app_id, private_key)
    logger.info("Fetching GitHub App installations")

    def fetch(page: int) -> tuple[list, Optional[int]]:
        body = client.call(
            "GET",
            "/app/installations",
            app_jwt.token,
            "Installation listing",
            api=api,
            params={"per_page": PAGE_SIZE, "page": page},
        )
        if not isinstance(body, list):
            raise MalformedResponse("Installation listing: expected a JSON array")
        return body, None

    installations = _collect_pages(fetch)
    ids = [item["id"] for item in installations if isinstance(item, dict) and "id" in item]
    if not ids:
        raise NoInstallations(f"No installations found for GitHub App {app_id}")
    return ids


def get_installation(
    app_id: str,
    private_key: PrivateKeySource,
    installation_id: Union[int, str],
    api: GitHubApi = DEFAULT_API,
) -> Installation:
    """GET /app/installations/{id}."""
    installation_id = parse_installation_id(installation_id)
    app_jwt = sign(app_id, private_key)
    logger.info("Fetching installation details for ID %s", installation_id)
    body = client.call(
        "GET",
        f"/app/installations/{installation_id}",
        app_jwt.token,
        "Installation lookup",
        api=api,
    )
    return client.parse_model(Installation, body, "Installation lookup")


def list_token_repositories(
    token: InstallationToken,
    api: GitHubApi = DEFAULT_API,
) -> list[str]:
    """Full names of every repository an installation token can reach."""

    def fetch(page: int) -> tuple[list, Optional[int]]:
        body = client.call(
            "GET",
            "/installation/repositories",
            token.value,
            "Installation repository listing",
            api=api,
            params={"per_page": PAGE_SIZE, "page": page},
        )
        if not isinstance(body, dict) or "repositories" not in body:
            raise MalformedResponse(
                "Installation repository listing: response has no repositories"
            )
        parsed = client.parse_model(
            InstallationRepositoriesPage, body, "Installation repository listing"
        )
        return parsed.repositories, parsed.total_count

    return [repo.full_name for repo in _collect_pages(fetch)]


def list_repositories(
    app_id: str,
    private_key: PrivateKeySource,
    installation_id: Union[int, str],
    api: GitHubApi = DEFAULT_API,
) -> list[str]:
    """Authenticate as *installation_id* and list its repositories."""
    token = authenticate(app_id, private_key, installation_id, api=api)
    logger.info("Fetching repositories for installation ID %s", installation_id)
    return list_token_repositories(token, api=api)


def resolve_installation(
    app_id: str,
    private_key: PrivateKeySource,
    target_repo: str,
    api: GitHubApi = DEFAULT_API,
) -> Resolution:
    """Find the first installation whose repositories include *target_repo*.

    Raises:
        NoInstallations: the App has no installations.
        NotFound: no installation lists *target_repo*.
    """
    client.split_repo(target_repo)
    logger.info("Searching for installation ID for repository %s", target_repo)

    installation_ids = list_installations(app_id, private_key, api=api)

    skipped = 0
    for checked, installation_id in enumerate(installation_ids, start=1):
        logger.info("Checking installation ID %s", installation_id)
        try:
            repositories = list_repositories(app_id, private_key, installation_id, api=api)
        except (GitHubAppError, httpx.HTTPError) as exc:
            skipped += 1
            logger.warning("Skipping installation %s: %s", installation_id, exc)
            continue

        if target_repo in repositories:
            logger.info(
                "Found installation ID %s for repository %s", installation_id, target_repo
            )
            return Resolution(installation_id, checked=checked, skipped=skipped)

    if skipped:
        logger.warning(
            "%d of %d installations could not be checked", skipped, len(installation_ids)
        )
    raise NotFound(
        f"Repository {target_repo} not found in any installation",
        checked=len(installation_ids),
        skipped=skipped,
    )


def find_installation_for_repo(
    app_id: str,
    private_key: PrivateKeySource,
    target_repo: str,
    api: GitHubApi = DEFAULT_API,
) -> int:
    return resolve_installation(app_id, private_key, target_repo, api=api).installation_id


def summarize_installations(
    app_id: str,
    private_key: PrivateKeySource,
    api: GitHubApi = DEFAULT_API,
) -> list[InstallationSummary]:
    """Every installation with its repositories, or why they could not be listed."""
    summaries = []
    for installation_id in list_installations(app_id, private_key, api=api):
        try:
            repositories = list_repositories(app_id, private_key, installation_id, api=api)
        except (GitHubAppError, httpx.HTTPError) as exc:
            logger.warning("Failed to fetch repositories for installation %s: %s", installation_id, exc)
            summaries.append(InstallationSummary(installation_id, error=str(exc)))
            continue
        summaries.append(InstallationSummary(installation_id, repositories=repositories))
    return summaries
