# nacos_vote/errors.py
from typing import Optional


class VotingError(Exception):
    """Base error; `message` is safe to show to the voter."""

    default_message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        self.status_code = status_code
        super().__init__(self.message)


class ValidationError(VotingError):
    """Missing or malformed input; the voter is prompted again."""

    default_message = "Invalid input. Please check your details."


class ConflictError(VotingError):
    """Already voted, or the email/device/network was used by someone else.

    `fatal` marks integrity conflicts that must tear the session down.
    """

    default_message = "You have already voted."

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None, fatal: bool = False):
        super().__init__(message, status_code)
        self.fatal = fatal


class NetworkError(VotingError):
    default_message = "Failed to connect to the server. Please check your network."


class SessionExpiredError(VotingError):
    default_message = "Your voting session has expired. Please sign in again."


class StorageError(VotingError):
    default_message = "Failed to update session. Ensure browser storage is enabled."


class WizardStateError(VotingError):
    default_message = "Please wait for the current request to finish."
