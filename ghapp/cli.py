"""Command line entry point.

Configuration comes from the environment (see `ghapp.core.config`); the
global flags override it for one invocation. Logs go to stderr. Commands
whose output is meant for scripts (``token``, ``find``, ``list``) print
only the value on stdout.
"""

import argparse
import sys
from typing import Optional

import httpx
import structlog

from ghapp.core.config import Settings, get_settings
from ghapp.core.exceptions import GitHubAppError, InvalidInput
from ghapp.core.logging import configure_structlog
from ghapp.demo import run_demo
from ghapp.github.auth import authenticate, check_key, verify
from ghapp.github.client import GitHubApi
from ghapp.github.installations import (
    get_installation,
    list_installations,
    resolve_installation,
    summarize_installations,
)
from ghapp.health import run_health_check
from ghapp.helper import format_summary, generate_secret_commands
from ghapp.secrets import installation_id_from_settings, private_key_from_settings

logger = structlog.get_logger("ghapp.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ghapp",
        description="Authenticate as a GitHub App and manage its installations.",
    )
    parser.add_argument("--app-id", help="GitHub App ID (default: $GITHUB_APP_ID)")
    parser.add_argument(
        "--private-key",
        metavar="PATH",
        help="Path to the App's PEM private key (default: from environment)",
    )
    parser.add_argument("--repository", help="Target repository, owner/repo (default: $GITHUB_REPOSITORY)")
    parser.add_argument("--api-url", help="GitHub API base URL (default: $GITHUB_API_URL)")
    parser.add_argument("--debug", action="store_true", default=None, help="Human-readable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    token = sub.add_parser("token", help="Print an installation access token")
    token.add_argument("--installation-id", type=int, help="Skip discovery and use this installation")

    verify_cmd = sub.add_parser("verify", help="Authenticate and check repository access")
    verify_cmd.add_argument("--installation-id", type=int)

    sub.add_parser("list", help="List all installation IDs")
    sub.add_parser("summary", help="Print every installation and its repositories")

    details = sub.add_parser("details", help="Print one installation as JSON")
    details.add_argument("installation", metavar="INSTALLATION_ID")

    find = sub.add_parser("find", help="Find the installation ID for a repository")
    find.add_argument("target", metavar="OWNER/REPO")

    secrets_cmd = sub.add_parser("generate-secrets", help="Print gcloud commands seeding installation-id secrets")
    secrets_cmd.add_argument("project_id")
    secrets_cmd.add_argument("repos", nargs="+", metavar="REPO")
    secrets_cmd.add_argument("--owner", help="Owner for bare repository names (default: $GITHUB_OWNER)")

    sub.add_parser("test-key", help="Check that the private key is accepted by GitHub")
    sub.add_parser("health", help="Run the full health check")
    sub.add_parser("demo", help="Open a timestamp-update pull request")
    return parser


def _settings_from_args(args: argparse.Namespace) -> Settings:
    settings = get_settings()
    overrides = {}
    if args.app_id:
        overrides["github_app_id"] = args.app_id
    if args.private_key:
        overrides["github_app_private_key"] = ""
        overrides["github_app_private_key_path"] = args.private_key
    if args.repository:
        overrides["github_repository"] = args.repository
    if args.api_url:
        overrides["github_api_url"] = args.api_url.rstrip("/")
    if args.debug is not None:
        overrides["debug"] = args.debug
    if getattr(args, "installation_id", None) is not None:
        overrides["installation_id"] = args.installation_id
    return settings.model_copy(update=overrides)


def _require_app_id(settings: Settings) -> str:
    if not settings.github_app_id:
        raise InvalidInput("GitHub App ID is required (--app-id or GITHUB_APP_ID)")
    return settings.github_app_id


def _installation_id(settings: Settings, private_key, api: GitHubApi) -> str:
    known = installation_id_from_settings(settings)
    if known:
        return known
    if not settings.github_repository:
        raise InvalidInput("Installation ID unknown and no repository given to discover it")
    resolution = resolve_installation(settings.github_app_id, private_key, settings.github_repository, api=api)
    return str(resolution.installation_id)


def _run(args: argparse.Namespace, settings: Settings) -> int:
    api = GitHubApi(base_url=settings.github_api_url, timeout=settings.http_timeout)

    if args.command == "health":
        report = run_health_check(settings)
        print(report.render())
        return 0 if report.healthy else 1

    if args.command == "demo":
        result = run_demo(settings)
        print(result.pull_request.html_url or f"#{result.pull_request.number}")
        return 0

    app_id = _require_app_id(settings)
    private_key = private_key_from_settings(settings)

    if args.command == "token":
        token = authenticate(app_id, private_key, _installation_id(settings, private_key, api), api=api)
        print(token.value)
        return 0

    if args.command == "verify":
        token = authenticate(app_id, private_key, _installation_id(settings, private_key, api), api=api)
        return 0 if verify(token, settings.github_repository, api=api) else 1

    if args.command == "list":
        for installation_id in list_installations(app_id, private_key, api=api):
            print(installation_id)
        return 0

    if args.command == "summary":
        print(format_summary(app_id, summarize_installations(app_id, private_key, api=api)))
        return 0

    if args.command == "details":
        print(get_installation(app_id, private_key, args.installation, api=api).model_dump_json(indent=2))
        return 0

    if args.command == "find":
        resolution = resolve_installation(app_id, private_key, args.target, api=api)
        logger.info(
            "installation resolved",
            installation_id=resolution.installation_id,
            checked=resolution.checked,
            skipped=resolution.skipped,
        )
        print(resolution.installation_id)
        return 0

    if args.command == "generate-secrets":
        print(
            generate_secret_commands(
                app_id,
                private_key,
                args.project_id,
                args.repos,
                owner=args.owner or settings.github_owner or None,
                api=api,
            )
        )
        return 0

    if args.command == "test-key":
        outcome = check_key(app_id, private_key, api=api)
        if outcome.ok:
            logger.info("key valid", installations=outcome.installation_count)
        else:
            logger.error("key check failed", status=outcome.status_code, detail=outcome.detail)
        return 0 if outcome.ok else 1

    raise InvalidInput(f"Unknown command: {args.command}")


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = _settings_from_args(args)
    configure_structlog(debug=settings.debug)

    try:
        return _run(args, settings)
    except (GitHubAppError, httpx.HTTPError) as exc:
        logger.error("command failed", command=args.command, error=str(exc))
        return 1


if __name__ == "__main__":
    sys.exit(main())
