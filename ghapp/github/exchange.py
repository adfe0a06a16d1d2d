"""Exchange an App JWT for an installation access token.

Installation tokens are scoped to the repositories and permissions the
installation granted and expire after one hour. They cannot be refreshed;
a new one needs a fresh JWT. Each exchange counts against GitHub's
token-issuance allowance.
"""

import logging
from typing import Union

from ghapp.core.exceptions import InvalidInput, MalformedResponse
from ghapp.github import client
from ghapp.github.client import DEFAULT_API, GitHubApi
from ghapp.github.schemas import InstallationToken
from ghapp.github.signer import AppJWT

logger = logging.getLogger(__name__)


def parse_installation_id(installation_id: Union[int, str]) -> int:
    """Accept an int or a numeric string, as stored in Secret Manager."""
    if isinstance(installation_id, bool):
        raise InvalidInput("Installation ID must be a positive integer")
    text = str(installation_id).strip() if installation_id is not None else ""
    if not text.isdigit() or int(text) <= 0:
        raise InvalidInput(f"Installation ID must be a positive integer, got {text!r}")
    return int(text)


def exchange(
    app_jwt: AppJWT,
    installation_id: Union[int, str],
    api: GitHubApi = DEFAULT_API,
) -> InstallationToken:
    """POST /app/installations/{id}/access_tokens with the JWT as bearer."""
    installation_id = parse_installation_id(installation_id)

    logger.info("Exchanging JWT for installation token (installation %s)", installation_id)
    body = client.call(
        "POST",
        f"/app/installations/{installation_id}/access_tokens",
        app_jwt.token,
        "Installation token exchange",
        api=api,
    )

    if not isinstance(body, dict) or not body.get("token"):
        raise MalformedResponse(
            "Installation token exchange: response has no token field"
        )
    return client.parse_model(InstallationToken, body, "Installation token exchange")
