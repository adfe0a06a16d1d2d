"""Google Secret Manager access through the gcloud CLI.

Holds the App's private key and, once discovered, the installation id.
Values are treated as opaque strings and are never logged. A private key
fetched from Secret Manager stays in memory; the signer accepts PEM text
directly, so it is never written to disk.
"""

import logging
import subprocess
from pathlib import Path
from typing import Optional

from ghapp.core.config import Settings
from ghapp.core.exceptions import InvalidInput, SecretStoreError
from ghapp.github.signer import PrivateKeySource

logger = logging.getLogger(__name__)

GCLOUD = "gcloud"
_TIMEOUT_SECONDS = 60


def _run_gcloud(args: list[str], stdin: Optional[str] = None) -> str:
    cmd = [GCLOUD, *args]
    try:
        result = subprocess.run(
            cmd,
            input=stdin,
            capture_output=True,
            text=True,
            timeout=_TIMEOUT_SECONDS,
        )
    except FileNotFoundError:
        raise SecretStoreError("gcloud CLI not found on PATH")
    except subprocess.TimeoutExpired:
        raise SecretStoreError(f"gcloud {' '.join(args[:3])} timed out")

    if result.returncode != 0:
        raise SecretStoreError(
            f"gcloud {' '.join(args[:3])} failed (exit {result.returncode}): "
            f"{result.stderr.strip()}"
        )
    return result.stdout


def access_secret(secret: str, project_id: str) -> str:
    """Return the latest version of *secret* in *project_id*."""
    if not secret or not project_id:
        raise SecretStoreError("Secret name and project id are required")
    logger.info("Retrieving secret %s from Secret Manager", secret)
    return _run_gcloud(
        [
            "secrets", "versions", "access", "latest",
            f"--secret={secret}",
            f"--project={project_id}",
        ]
    )


def add_secret_version(secret: str, project_id: str, value: str) -> None:
    """Store *value* as a new version of *secret*; the value goes via stdin."""
    if not secret or not project_id:
        raise SecretStoreError("Secret name and project id are required")
    logger.info("Storing new version of secret %s in Secret Manager", secret)
    _run_gcloud(
        [
            "secrets", "versions", "add", secret,
            "--data-file=-",
            f"--project={project_id}",
        ],
        stdin=value,
    )


def add_secret_command(secret: str, project_id: str, value: str) -> str:
    """Shell equivalent of `add_secret_version`, for an operator to run."""
    return (
        f'echo -n "{value}" | {GCLOUD} secrets versions add {secret} '
        f"--data-file=- --project={project_id}"
    )


def private_key_from_settings(settings: Settings) -> PrivateKeySource:
    """Pick the configured private key: inline PEM, file path, then secret."""
    if settings.github_app_private_key:
        return settings.github_app_private_key
    if settings.github_app_private_key_path:
        return Path(settings.github_app_private_key_path)
    if settings.github_app_private_key_secret:
        pem = access_secret(settings.github_app_private_key_secret, settings.project_id)
        if not pem.strip():
            raise SecretStoreError("GitHub App private key secret is empty")
        return pem
    raise InvalidInput(
        "No private key configured. Set GITHUB_APP_PRIVATE_KEY, "
        "GITHUB_APP_PRIVATE_KEY_PATH or GITHUB_APP_PRIVATE_KEY_SECRET."
    )


def installation_id_from_settings(settings: Settings) -> Optional[str]:
    """The known installation id, or None when it still has to be discovered."""
    if settings.installation_id is not None:
        return str(settings.installation_id)
    if not settings.installation_id_secret:
        return None
    try:
        value = access_secret(settings.installation_id_secret, settings.project_id).strip()
    except SecretStoreError as exc:
        logger.info("Installation ID not available from Secret Manager: %s", exc)
        return None
    return value or None
