"""Pydantic records for the GitHub REST payloads ghapp reads.

Only the fields the toolkit depends on are declared; everything else in a
response is ignored.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, SecretStr


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class InstallationToken(_Payload):
    """A short-lived installation access token.

    ``token`` is a `SecretStr` so that repr(), str() and log lines never
    show the credential. Use `value` when it has to go on the wire.
    """

    token: SecretStr
    expires_at: Optional[datetime] = None

    @property
    def value(self) -> str:
        return self.token.get_secret_value()


class InstallationAccount(_Payload):
    login: str
    id: Optional[int] = None


class Installation(_Payload):
    id: int
    account: Optional[InstallationAccount] = None
    target_type: str = ""
    repository_selection: str = ""

    @property
    def account_login(self) -> Optional[str]:
        return self.account.login if self.account else None


class Repository(_Payload):
    full_name: str
    default_branch: str = "main"
    private: bool = False


class InstallationRepositoriesPage(_Payload):
    total_count: int = 0
    repositories: list[Repository] = []


class PullRequest(_Payload):
    number: int
    title: str = ""
    state: str = "open"
    html_url: str = ""


class RateLimitResource(_Payload):
    limit: int
    remaining: int


class RateLimit(_Payload):
    rate: RateLimitResource
