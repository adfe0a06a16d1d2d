"""GitHub App authentication facade.

`authenticate` is the one call orchestration needs: sign a JWT, trade it
for an installation token. `verify` is a smoke test for an obtained token
and is never consulted by `authenticate` itself.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

import httpx

from ghapp.core.exceptions import InvalidInput
from ghapp.github import client
from ghapp.github.client import DEFAULT_API, GitHubApi
from ghapp.github.exchange import exchange
from ghapp.github.schemas import InstallationToken
from ghapp.github.signer import PrivateKeySource, sign

logger = logging.getLogger(__name__)


def authenticate(
    app_id: str,
    private_key: PrivateKeySource,
    installation_id: Union[int, str],
    api: GitHubApi = DEFAULT_API,
) -> InstallationToken:
    """Sign a fresh JWT and exchange it for an installation token."""
    logger.info("Generating JWT for GitHub App ID %s", app_id)
    app_jwt = sign(app_id, private_key)
    return exchange(app_jwt, installation_id, api=api)


def verify(
    token: Union[InstallationToken, str],
    repo_full_name: str,
    api: GitHubApi = DEFAULT_API,
) -> bool:
    """Return True iff GET /repos/{owner}/{repo} answers with repository data."""
    if not token:
        raise InvalidInput("Token is required for testing")
    owner, name = client.split_repo(repo_full_name)
    bearer = token.value if isinstance(token, InstallationToken) else token

    logger.info("Testing GitHub App authentication for repository %s", repo_full_name)
    try:
        response = client.send("GET", f"/repos/{owner}/{name}", bearer, api=api)
        body = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.error("API test failed: %s", exc)
        return False

    if not isinstance(body, dict):
        logger.error("API test failed: unexpected response format")
        return False
    if "message" in body:
        logger.error("API test failed: %s", body["message"])
        return False
    if "full_name" not in body:
        logger.error("API test failed: unexpected response format")
        return False

    logger.info("GitHub App authentication test passed")
    return True


@dataclass
class KeyCheck:
    """Outcome of `check_key`."""

    ok: bool
    status_code: Optional[int]
    detail: str
    installation_count: int = 0


def check_key(
    app_id: str,
    private_key: PrivateKeySource,
    api: GitHubApi = DEFAULT_API,
) -> KeyCheck:
    """Check that the App can mint a JWT GitHub accepts.

    Key loading and signing errors propagate. The HTTP outcome is
    classified rather than raised.
    """
    app_jwt = sign(app_id, private_key)
    response = client.send("GET", "/app/installations", app_jwt.token, api=api)
    status = response.status_code

    if status == 200:
        try:
            body = response.json()
        except ValueError:
            body = []
        count = len(body) if isinstance(body, list) else 0
        return KeyCheck(True, status, "Key is valid and working", count)
    if status == 401:
        return KeyCheck(False, status, "Authentication failed: the private key may be invalid or revoked")
    if status == 403:
        return KeyCheck(False, status, "Access forbidden: check that the GitHub App is properly configured")
    return KeyCheck(False, status, f"Unexpected response (HTTP {status})")
