"""Error kinds raised by the GitHub App toolkit.

Every failure surfaces as a subclass of `GitHubAppError` so callers can
catch the whole family at the command boundary. Messages name the step
that failed and, where GitHub supplied one, its diagnostic text. They
never carry private key material or bearer tokens.
"""

from typing import Optional


class GitHubAppError(Exception):
    """Base class for every error raised by ghapp."""


class InvalidInput(GitHubAppError):
    """A caller-supplied parameter is missing or malformed."""


class KeyNotFound(GitHubAppError):
    """The private key file or material is missing or unreadable."""


class SigningError(GitHubAppError):
    """The RS256 signing operation failed."""


class KeyInvalid(SigningError):
    """The private key could not be parsed as an RSA private key.

    A signing failure too: callers catching `SigningError` see it.
    """


class RemoteError(GitHubAppError):
    """GitHub answered with a structured error (a ``message`` field)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        step: Optional[str] = None,
    ):
        text = f"{step} failed: GitHub API error: {message}" if step else message
        super().__init__(text)
        self.message = message
        self.status_code = status_code
        self.step = step


class MalformedResponse(GitHubAppError):
    """A successful response lacked a field the caller depends on."""


class NoInstallations(GitHubAppError):
    """The App has zero installations."""


class NotFound(GitHubAppError):
    """The target repository is not in any installation's repository set."""

    def __init__(self, message: str, checked: int = 0, skipped: int = 0):
        super().__init__(message)
        self.checked = checked
        self.skipped = skipped


class SecretStoreError(GitHubAppError):
    """Reading from or writing to Secret Manager failed."""


class GitError(GitHubAppError):
    """A git subprocess exited non-zero."""
