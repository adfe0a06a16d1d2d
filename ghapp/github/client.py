"""GitHub REST plumbing.

Uses a synchronous httpx client, one request per call, no retries. Every
helper takes the bearer credential explicitly: the App JWT for ``/app/*``
endpoints, the installation token for everything else.

GitHub reports API-level failures as a JSON object with a ``message``
field. `parse_body` turns those into `RemoteError` regardless of the
status code, so callers only ever see parsed JSON or an exception.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ghapp.core.config import GITHUB_API_BASE
from ghapp.core.exceptions import InvalidInput, MalformedResponse, RemoteError
from ghapp.github.schemas import PullRequest, RateLimit, Repository

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

USER_AGENT = "ghapp/0.1"
API_VERSION = "2022-11-28"


@dataclass(frozen=True)
class GitHubApi:
    """Where to send requests and how long to wait for them.

    ``timeout=None`` keeps httpx's default instead of disabling timeouts.
    """

    base_url: str = GITHUB_API_BASE
    timeout: Optional[float] = None


DEFAULT_API = GitHubApi()


def _auth_headers(token: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": API_VERSION,
        "User-Agent": USER_AGENT,
    }


def split_repo(full_name: str) -> tuple[str, str]:
    """Split ``owner/repo`` into its parts."""
    owner, _, name = (full_name or "").partition("/")
    if not owner or not name or "/" in name:
        raise InvalidInput(f"Repository must be 'owner/repo', got {full_name!r}")
    return owner, name


def send(
    method: str,
    path: str,
    token: str,
    api: GitHubApi = DEFAULT_API,
    params: Optional[dict] = None,
    json: Optional[dict] = None,
) -> httpx.Response:
    """Issue one request and return the raw response."""
    client_kwargs: dict[str, Any] = {"base_url": api.base_url}
    if api.timeout is not None:
        client_kwargs["timeout"] = api.timeout

    with httpx.Client(**client_kwargs) as client:
        response = client.request(
            method,
            path,
            headers=_auth_headers(token),
            params=params,
            json=json,
        )
    logger.debug("%s %s -> %s", method, path, response.status_code)
    return response


def parse_body(response: httpx.Response, step: str) -> Any:
    """Decode a JSON body, raising on GitHub's error envelope."""
    try:
        body = response.json()
    except ValueError:
        if response.status_code >= 400:
            raise RemoteError(
                f"HTTP {response.status_code}",
                status_code=response.status_code,
                step=step,
            )
        raise MalformedResponse(f"{step}: response body is not JSON")

    if isinstance(body, dict) and "message" in body:
        raise RemoteError(
            str(body["message"]),
            status_code=response.status_code,
            step=step,
        )
    if response.status_code >= 400:
        raise RemoteError(
            f"HTTP {response.status_code}",
            status_code=response.status_code,
            step=step,
        )
    return body


def parse_model(model: type[ModelT], data: Any, step: str) -> ModelT:
    """Validate *data* as *model*; a payload that does not fit is `MalformedResponse`."""
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise MalformedResponse(
            f"{step}: unexpected response shape ({exc.error_count()} errors): {exc}"
        ) from exc


def call(
    method: str,
    path: str,
    token: str,
    step: str,
    api: GitHubApi = DEFAULT_API,
    params: Optional[dict] = None,
    json: Optional[dict] = None,
) -> Any:
    """`send` followed by `parse_body`."""
    response = send(method, path, token, api=api, params=params, json=json)
    return parse_body(response, step)


def get_repository(token: str, full_name: str, api: GitHubApi = DEFAULT_API) -> Repository:
    owner, name = split_repo(full_name)
    body = call("GET", f"/repos/{owner}/{name}", token, "Repository lookup", api=api)
    if not isinstance(body, dict) or "full_name" not in body:
        raise MalformedResponse("Repository lookup: response has no full_name")
    return parse_model(Repository, body, "Repository lookup")


def list_pull_requests(
    token: str,
    full_name: str,
    state: str = "open",
    api: GitHubApi = DEFAULT_API,
) -> list[PullRequest]:
    owner, name = split_repo(full_name)
    body = call(
        "GET",
        f"/repos/{owner}/{name}/pulls",
        token,
        "Pull request listing",
        api=api,
        params={"state": state, "per_page": 100},
    )
    if not isinstance(body, list):
        raise MalformedResponse("Pull request listing: expected a JSON array")
    return [parse_model(PullRequest, item, "Pull request listing") for item in body]


def close_pull_request(
    token: str,
    full_name: str,
    number: int,
    api: GitHubApi = DEFAULT_API,
) -> PullRequest:
    owner, name = split_repo(full_name)
    body = call(
        "PATCH",
        f"/repos/{owner}/{name}/pulls/{number}",
        token,
        f"Closing pull request #{number}",
        api=api,
        json={"state": "closed"},
    )
    return parse_model(PullRequest, body, f"Closing pull request #{number}")


def create_pull_request(
    token: str,
    full_name: str,
    title: str,
    body: str,
    head_branch: str,
    base_branch: str,
    api: GitHubApi = DEFAULT_API,
) -> PullRequest:
    """Open a pull request from *head_branch* into *base_branch*."""
    owner, name = split_repo(full_name)
    data = call(
        "POST",
        f"/repos/{owner}/{name}/pulls",
        token,
        "Pull request creation",
        api=api,
        json={
            "title": title,
            "body": body,
            "head": head_branch,
            "base": base_branch,
        },
    )
    return parse_model(PullRequest, data, "Pull request creation")


def get_rate_limit(token: str, api: GitHubApi = DEFAULT_API) -> RateLimit:
    body = call("GET", "/rate_limit", token, "Rate limit lookup", api=api)
    if not isinstance(body, dict) or "rate" not in body:
        raise MalformedResponse("Rate limit lookup: response has no rate")
    return parse_model(RateLimit, body, "Rate limit lookup")
