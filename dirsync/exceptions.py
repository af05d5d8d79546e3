"""
Exception hierarchy for directory synchronization.

Errors flagged as user facing can be reported back to the requesting client.
Everything else maps to an opaque server-side failure; the raw output of the
directory tools is kept on the exception for logging only.
"""

from typing import Optional


class DirectorySyncError(Exception):
    """Base exception for directory synchronization errors."""

    user_facing = False

    def public_message(self) -> str:
        """Message safe to show to an untrusted caller."""
        if self.user_facing:
            return str(self)
        return "Directory operation failed"


class LaunchFailure(DirectorySyncError):
    """Raised when an administrative tool cannot be started at all."""

    def __init__(self, command: str, reason: Exception):
        self.command = command
        self.reason = reason
        super().__init__(f"Unable to run {command}: {reason}")


class AccountAlreadyExists(DirectorySyncError):
    """Raised when a non-admin account creation hits an existing entry."""

    user_facing = True

    def __init__(self, account_name: str):
        self.account_name = account_name
        super().__init__(f"Account already exists: {account_name}")


class InvalidCredentials(DirectorySyncError):
    """Raised when a supplied password is rejected by the directory."""

    user_facing = True

    def __init__(self, account_name: str, message: str = "Invalid credentials"):
        self.account_name = account_name
        super().__init__(message)


class AuthenticationFailure(InvalidCredentials):
    """Raised when a bind as the account itself fails."""

    def __init__(self, account_name: str):
        super().__init__(account_name, f"Authentication failed for {account_name}")


class InvalidMemberError(DirectorySyncError, ValueError):
    """Raised for membership requests that must never reach the directory."""

    user_facing = True


class DirectoryOperationFailure(DirectorySyncError):
    """
    Raised when a directory tool reports a failure.

    The raw tool output is available as ``diagnostic`` but is never part of
    the string form of the exception.
    """

    def __init__(self, operation: str, target: str, outcome=None,
                 diagnostic: Optional[str] = None):
        self.operation = operation
        self.target = target
        self.outcome = outcome
        self.diagnostic = diagnostic or ''
        super().__init__(self._describe())

    def _describe(self) -> str:
        outcome = getattr(self.outcome, 'value', self.outcome)
        message = f"Directory operation {self.operation} failed for {self.target}"
        if outcome:
            message += f" ({outcome})"
        return message


class GroupAlreadyExists(DirectoryOperationFailure):
    """Raised when a group entry is created twice."""


class EntryNotFound(DirectoryOperationFailure):
    """Raised when the target entry of an operation does not exist."""


class BootstrapInconsistency(DirectoryOperationFailure):
    """
    Raised when an account entry was created but joining the default group failed.

    The account entry is left in place; nothing is rolled back. ``account``
    holds the created account, including a generated password, so the caller
    can still hand out the credentials.
    """

    def __init__(self, account_name: str, target: str, outcome=None,
                 diagnostic: Optional[str] = None, account=None):
        self.account_name = account_name
        self.account = account
        super().__init__('ensure-default-group', target, outcome, diagnostic)

    def _describe(self) -> str:
        return (f"Account {self.account_name} was created but could not be added "
                f"to default group {self.target}")
