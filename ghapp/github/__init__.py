"""GitHub App authentication core: sign, exchange, resolve, verify.

The token exchange itself lives in `ghapp.github.exchange`.
"""

from ghapp.github.auth import KeyCheck, authenticate, check_key, verify
from ghapp.github.client import DEFAULT_API, GitHubApi
from ghapp.github.installations import (
    Resolution,
    find_installation_for_repo,
    list_installations,
    list_repositories,
    resolve_installation,
)
from ghapp.github.schemas import Installation, InstallationToken
from ghapp.github.signer import AppJWT, base64url_decode, base64url_encode, sign

__all__ = [
    "AppJWT",
    "DEFAULT_API",
    "GitHubApi",
    "Installation",
    "InstallationToken",
    "KeyCheck",
    "Resolution",
    "authenticate",
    "base64url_decode",
    "base64url_encode",
    "check_key",
    "find_installation_for_repo",
    "list_installations",
    "list_repositories",
    "resolve_installation",
    "sign",
    "verify",
]
