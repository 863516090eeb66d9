"""Trial request, session and polling schemas."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from enterprise_trial.config import settings


class TrialStatus(str, Enum):
    """Lifecycle of a trial session.

    idle → submitted → waiting_for_email_verification → confirmed | cancelled.
    Confirmed and cancelled are terminal for the session; only a resend
    (or a new submission) leaves cancelled.
    """

    IDLE = "idle"
    SUBMITTED = "submitted"
    WAITING_FOR_EMAIL_VERIFICATION = "waiting_for_email_verification"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class TrialRequest(BaseModel):
    """Form data sent to the trial service."""

    company: str
    first_name: str
    last_name: str
    email: EmailStr
    domain: str
    general_consent: bool
    newsletter_consent: Optional[bool] = None

    @field_validator("company", "first_name", "last_name", "domain")
    @classmethod
    def _required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("general_consent")
    @classmethod
    def _consent(cls, value: bool) -> bool:
        if not value:
            raise ValueError("general consent is required")
        return value

    def to_payload(self) -> dict:
        """Body for ``POST /public/v1/trials``."""
        payload = self.model_dump(exclude_none=True)
        payload["_type"] = "enterprise-trial"
        return payload


class TrialDetails(BaseModel):
    """Subscriber fields previously submitted for a trial."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    domain: Optional[str] = None

    @property
    def subscriber(self) -> str:
        parts = [self.first_name or "", self.last_name or ""]
        return " ".join(p for p in parts if p)


class TrialToken(BaseModel):
    """Token returned once the email address is confirmed."""

    token: str
    already_stored: bool = False  # server-side ``token_retrieved``


class PendingVerification(BaseModel):
    """The trial exists but its email address is not verified yet."""

    resend_link: str


class RetryBudget(BaseModel):
    """Delay between confirmation checks and how many checks are left."""

    delay_ms: int = Field(gt=0)
    retries_remaining: int = Field(ge=0)

    @classmethod
    def default(cls) -> "RetryBudget":
        return cls(delay_ms=settings.poll_delay_ms, retries_remaining=settings.poll_retries)

    @classmethod
    def for_resend(cls) -> "RetryBudget":
        return cls(delay_ms=settings.poll_delay_ms, retries_remaining=settings.resend_retries)

    @property
    def delay_seconds(self) -> float:
        return self.delay_ms / 1000


class TrialSession(BaseModel):
    """In-memory state of one trial request.

    Mutated only by the confirmation poller and the service operations;
    presentation code reads it.
    """

    trial_link: Optional[str] = None
    resend_link: Optional[str] = None
    status: TrialStatus = TrialStatus.IDLE
    error_message: Optional[str] = None
    cancelled: bool = False
    confirmed: bool = False

    # Display data (from the form or from /details after a reload)
    subscriber: Optional[str] = None
    email: Optional[str] = None

    trial_key_saved: bool = False
    status_history: list[TrialStatus] = []

    @property
    def is_terminal(self) -> bool:
        return self.cancelled or self.confirmed

    def bind_trial_link(self, trial_link: str) -> None:
        """Assign the trial link. It cannot change once set."""
        if self.trial_link is not None and self.trial_link != trial_link:
            raise ValueError("trial link is already assigned for this session")
        self.trial_link = trial_link

    def set_status(self, status: TrialStatus) -> None:
        self.status = status
        self.status_history.append(status)

    def mark_confirmed(self) -> bool:
        """Move to confirmed. Returns False if the session was already terminal."""
        if self.is_terminal:
            return False
        self.confirmed = True
        self.set_status(TrialStatus.CONFIRMED)
        return True

    def mark_cancelled(self) -> bool:
        """Move to cancelled. Returns False if the session was already terminal."""
        if self.is_terminal:
            return False
        self.cancelled = True
        self.set_status(TrialStatus.CANCELLED)
        return True

    def reopen(self) -> None:
        """Leave cancelled for a new poll cycle after a resend."""
        if self.confirmed:
            raise ValueError("a confirmed session cannot be reopened")
        self.cancelled = False
        self.error_message = None
        self.set_status(TrialStatus.WAITING_FOR_EMAIL_VERIFICATION)
