"""Error taxonomy for the trial confirmation flow.

Remote and local calls translate transport failures, unexpected statuses
and malformed payloads into one of these before anything reaches the
session state. Waiting for email verification is not an error and is
modelled as ``PendingVerification`` in ``enterprise_trial.schemas.trial``.
"""

from typing import Optional


class TrialError(Exception):
    """Base class. ``message`` is safe to show to the user."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class TrialValidationError(TrialError):
    """Malformed or duplicate submission, correctable by the user."""


class TransientServerError(TrialError):
    """Unexpected status or payload shape from the remote trial service."""


class PersistenceFailure(TrialError):
    """The local backend did not store a token or trial key."""
