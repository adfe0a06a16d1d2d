"""GitHub App health check.

Walks the whole authentication chain for one repository and records
every problem rather than stopping at the first one:

1. required configuration is present
2. the private key is retrievable and PEM-shaped
3. the installation id is retrievable and numeric
4. a JWT can be generated and has three segments
5. the JWT can be exchanged for an installation token
6. the token can read the repository
7. the token has contents and pull-request permissions
8. the rate limit is not close to exhaustion

A check whose inputs are missing (e.g. token exchange without a JWT) is
skipped; the earlier failure has already been recorded. The run is
HEALTHY iff no errors were recorded. Warnings never change the status.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import httpx

from ghapp.core.config import Settings
from ghapp.core.exceptions import GitHubAppError
from ghapp.github import client
from ghapp.github.auth import verify
from ghapp.github.client import GitHubApi
from ghapp.github.exchange import exchange
from ghapp.github.schemas import InstallationToken
from ghapp.github.signer import AppJWT, PrivateKeySource, sign
from ghapp.secrets import access_secret

logger = logging.getLogger(__name__)

HEALTHY = "HEALTHY"
UNHEALTHY = "UNHEALTHY"
LOW_RATE_LIMIT = 100

_PEM_MARKERS = ("BEGIN PRIVATE KEY", "BEGIN RSA PRIVATE KEY")


@dataclass
class HealthReport:
    repository: str
    app_id: str
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    rate_remaining: Optional[int] = None
    rate_limit: Optional[int] = None
    started: float = field(default_factory=time.monotonic)
    duration_seconds: float = 0.0

    @property
    def status(self) -> str:
        return UNHEALTHY if self.errors else HEALTHY

    @property
    def healthy(self) -> bool:
        return not self.errors

    def record_error(self, message: str) -> None:
        logger.error(message)
        self.errors.append(message)

    def record_warning(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def finish(self) -> "HealthReport":
        self.duration_seconds = round(time.monotonic() - self.started, 3)
        return self

    def metrics(self) -> dict:
        """Monitoring document in the shape Cloud Logging dashboards expect."""
        return {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "repository": self.repository,
            "github_app_id": self.app_id,
            "health_status": self.status,
            "error_count": len(self.errors),
            "warning_count": len(self.warnings),
            "check_duration_seconds": self.duration_seconds,
        }

    def render(self) -> str:
        lines = [
            "=== Health Check Summary ===",
            f"Status: {self.status}",
            f"Errors: {len(self.errors)}",
            f"Warnings: {len(self.warnings)}",
        ]
        if self.rate_remaining is not None and self.rate_limit is not None:
            lines.append(f"Rate limit: {self.rate_remaining}/{self.rate_limit} remaining")
        if self.errors:
            lines.append("")
            lines.append("Error details:")
            lines.extend(f"  - {e}" for e in self.errors)
        if self.warnings:
            lines.append("")
            lines.append("Warning details:")
            lines.extend(f"  - {w}" for w in self.warnings)
        lines.append("")
        lines.append("=== Monitoring Metrics ===")
        lines.append(json.dumps(self.metrics(), indent=2))
        return "\n".join(lines)


def _check_configuration(settings: Settings, report: HealthReport) -> None:
    if not settings.github_app_id:
        report.record_error("GITHUB_APP_ID environment variable not set")
    if not settings.github_repository:
        report.record_error("GITHUB_REPOSITORY environment variable not set")
    if not (
        settings.github_app_private_key
        or settings.github_app_private_key_path
        or settings.github_app_private_key_secret
    ):
        report.record_error("GITHUB_APP_PRIVATE_KEY_SECRET environment variable not set")
    if settings.installation_id is None and not settings.installation_id_secret:
        report.record_error("INSTALLATION_ID_SECRET environment variable not set")
    uses_secrets = (
        (settings.github_app_private_key_secret and not settings.github_app_private_key)
        or (settings.installation_id is None and settings.installation_id_secret)
    )
    if uses_secrets and not settings.project_id:
        report.record_error("PROJECT_ID environment variable not set")


def _check_private_key(settings: Settings, report: HealthReport) -> Optional[PrivateKeySource]:
    if settings.github_app_private_key:
        pem = settings.github_app_private_key
    elif settings.github_app_private_key_path:
        path = Path(settings.github_app_private_key_path)
        try:
            pem = path.read_text(encoding="utf-8")
        except OSError:
            report.record_error(f"GitHub App private key file is not readable: {path}")
            return None
    elif settings.github_app_private_key_secret and settings.project_id:
        try:
            pem = access_secret(settings.github_app_private_key_secret, settings.project_id)
        except GitHubAppError:
            report.record_error("Failed to access GitHub App private key secret")
            return None
    else:
        return None

    if not pem.strip():
        report.record_error("GitHub App private key secret is empty")
        return None
    if not any(marker in pem for marker in _PEM_MARKERS):
        report.record_error("GitHub App private key secret does not contain valid private key")
        return None
    return pem


def _check_installation_id(settings: Settings, report: HealthReport) -> Optional[str]:
    if settings.installation_id is not None:
        value = str(settings.installation_id)
    elif settings.installation_id_secret and settings.project_id:
        try:
            value = access_secret(settings.installation_id_secret, settings.project_id).strip()
        except GitHubAppError:
            report.record_error("Failed to access installation ID secret")
            return None
    else:
        return None

    if not value:
        report.record_error("Installation ID secret is empty")
        return None
    if not value.isdigit():
        report.record_error(f"Installation ID is not a valid number: {value}")
        return None
    return value


def _check_jwt(app_id: str, private_key: PrivateKeySource, report: HealthReport) -> Optional[AppJWT]:
    try:
        app_jwt = sign(app_id, private_key)
    except GitHubAppError as exc:
        report.record_error(f"Failed to generate JWT: {exc}")
        return None
    if len(app_jwt.segments) != 3:
        report.record_error("Generated JWT has invalid format")
        return None
    return app_jwt


def _check_exchange(
    app_jwt: AppJWT,
    installation_id: str,
    report: HealthReport,
    api: GitHubApi,
) -> Optional[InstallationToken]:
    try:
        return exchange(app_jwt, installation_id, api=api)
    except (GitHubAppError, httpx.HTTPError) as exc:
        report.record_error(f"Failed to exchange JWT for installation token: {exc}")
        return None


def _probe(token: InstallationToken, path: str, api: GitHubApi, params: Optional[dict] = None) -> Optional[int]:
    try:
        return client.send("GET", path, token.value, api=api, params=params).status_code
    except httpx.HTTPError as exc:
        logger.warning("Request to %s failed: %s", path, exc)
        return None


def _check_permissions(
    token: InstallationToken,
    repository: str,
    report: HealthReport,
    api: GitHubApi,
) -> None:
    owner, name = client.split_repo(repository)

    status = _probe(token, f"/repos/{owner}/{name}/contents", api)
    if status == 403:
        report.record_error("Token lacks contents permission")
    elif status == 404:
        report.record_warning("Repository not found or not accessible")
    elif status != 200:
        report.record_warning(f"Unexpected response testing contents permission: {status}")

    status = _probe(
        token,
        f"/repos/{owner}/{name}/pulls",
        api,
        params={"state": "open", "per_page": 1},
    )
    if status == 403:
        report.record_error("Token lacks pull requests permission")
    elif status != 200:
        report.record_warning(f"Unexpected response testing pull requests permission: {status}")


def _check_rate_limit(token: InstallationToken, report: HealthReport, api: GitHubApi) -> None:
    try:
        rate = client.get_rate_limit(token.value, api=api).rate
    except (GitHubAppError, httpx.HTTPError) as exc:
        logger.warning("Rate limit lookup failed: %s", exc)
        return
    report.rate_remaining = rate.remaining
    report.rate_limit = rate.limit
    logger.info("Rate limit: %s/%s remaining", rate.remaining, rate.limit)
    if rate.remaining < LOW_RATE_LIMIT:
        report.record_warning(f"Rate limit is low: {rate.remaining}/{rate.limit} remaining")


def run_health_check(settings: Settings) -> HealthReport:
    """Run every check against ``settings.github_repository``."""
    api = GitHubApi(base_url=settings.github_api_url, timeout=settings.http_timeout)
    report = HealthReport(repository=settings.github_repository, app_id=settings.github_app_id)
    logger.info(
        "Starting GitHub App health check for %s (App ID %s)",
        settings.github_repository,
        settings.github_app_id,
    )

    _check_configuration(settings, report)
    private_key = _check_private_key(settings, report)
    installation_id = _check_installation_id(settings, report)

    app_jwt = None
    if private_key is not None and installation_id and settings.github_app_id:
        app_jwt = _check_jwt(settings.github_app_id, private_key, report)

    token = None
    if app_jwt is not None and installation_id:
        token = _check_exchange(app_jwt, installation_id, report, api)

    if token is not None and settings.github_repository:
        try:
            if not verify(token, settings.github_repository, api=api):
                report.record_error("Repository access test failed")
            _check_permissions(token, settings.github_repository, report, api)
        except GitHubAppError as exc:
            report.record_error(f"Repository access test failed: {exc}")

    if token is not None:
        _check_rate_limit(token, report, api)

    return report.finish()
