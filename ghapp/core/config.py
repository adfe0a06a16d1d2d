from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

GITHUB_API_BASE = "https://api.github.com"


def _normalise_pem(value: str) -> str:
    """Turn escaped newlines back into real ones.

    CI systems and ``.env`` files commonly store a PEM on a single line with
    literal ``\\n`` sequences. The signer needs the multi-line form.
    """
    if "\\n" in value and "-----BEGIN" in value:
        return value.replace("\\n", "\n")
    return value


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables.

    Only the command line layer reads this. The authentication core takes
    every value as an explicit argument so it never depends on process-wide
    state.

    Private key sources, in order of preference
    ────────────────────────────────────────────
    • GITHUB_APP_PRIVATE_KEY        (PEM contents)
    • GITHUB_APP_PRIVATE_KEY_PATH   (path to a PEM file)
    • GITHUB_APP_PRIVATE_KEY_SECRET (Secret Manager secret name, needs PROJECT_ID)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
    )

    # GitHub App identity
    github_app_id: str = ""
    github_app_private_key: str = ""
    github_app_private_key_path: str = ""

    @field_validator("github_app_private_key", mode="before")
    @classmethod
    def normalise_private_key(cls, v: str) -> str:
        return _normalise_pem(v or "")

    # Installation id, when already known. Discovered otherwise.
    installation_id: Optional[int] = None

    # Target repository, "owner/repo"
    github_repository: str = ""
    github_owner: str = ""

    # Secret Manager (gcloud)
    project_id: str = ""
    github_app_private_key_secret: str = ""
    installation_id_secret: str = ""

    # GitHub API; override for GitHub Enterprise Server.
    github_api_url: str = GITHUB_API_BASE

    @field_validator("github_api_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return (v or GITHUB_API_BASE).rstrip("/")

    # Seconds. Leave unset to use the HTTP client's default.
    http_timeout: Optional[float] = None

    # Demo PR workflow
    git_user_name: str = "SDK Automation"
    git_user_email: str = "sdk-automation@company.com"

    # App
    debug: bool = False


def get_settings() -> Settings:
    return Settings()
