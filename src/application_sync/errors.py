from typing import Optional


class SyncError(Exception):
    """Base class for failures that abort a sync run."""

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


class AuthenticationError(SyncError):
    pass


class AccountNotLinkedError(SyncError):
    pass


class MissingCredentialError(SyncError):
    """No refresh token stored; the user has to re-authenticate."""


class TokenRefreshError(SyncError):
    pass


class ProviderApiError(SyncError):
    def __init__(self, status: int, body: str):
        super().__init__(f"Gmail API error ({status})", body)
        self.status = status
        self.body = body


class PersistenceError(SyncError):
    pass


class ClassificationUnusable(Exception):
    """Raised by a classification tier whose output can't be used.

    Not an error: the pipeline catches it and moves on to the next tier.
    """
