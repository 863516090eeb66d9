"""Enterprise trial service — entry point for presentation code.

Wires the remote trial service, the local backend, the notification sink
and the bootstrap data around a single confirmation poller. Form and
banner views call ``submit``/``resume``/``resend``/``cancel`` and read
``session``; they never touch the session fields themselves.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Union

import structlog
from pydantic import ValidationError

from enterprise_trial.config import settings
from enterprise_trial.errors import TransientServerError, TrialError, TrialValidationError
from enterprise_trial.notifications.sink import LogNotificationSink, NotificationSink
from enterprise_trial.remote.backend import BackendClient
from enterprise_trial.remote.trial_service import TrialServiceClient
from enterprise_trial.schemas.trial import RetryBudget, TrialRequest, TrialSession, TrialStatus
from enterprise_trial.texts import t
from enterprise_trial.trial.bootstrap import BootstrapData
from enterprise_trial.trial.poller import ConfirmationPoller, PollOutcome
from enterprise_trial.trial.scheduler import Scheduler

logger = structlog.get_logger()


def validation_message(error: ValidationError) -> str:
    """First validation problem as inline form text."""
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ()))
    if field == "email":
        return t("invalid_email")
    return f"{field}: {first.get('msg', 'invalid value')}"


def parse_form(form: Union[TrialRequest, dict]) -> TrialRequest:
    """Validate form data, raising ``TrialValidationError`` with inline text."""
    if isinstance(form, TrialRequest):
        return form
    try:
        return TrialRequest.model_validate(form)
    except ValidationError as e:
        raise TrialValidationError(validation_message(e)) from e


class EnterpriseTrialService:
    """Submits trial requests and follows them until confirmation."""

    def __init__(
        self,
        trial_client: Optional[TrialServiceClient] = None,
        backend: Optional[BackendClient] = None,
        notifier: Optional[NotificationSink] = None,
        bootstrap: Optional[BootstrapData] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        self.trial_client = trial_client or TrialServiceClient()
        self.backend = backend or BackendClient()
        self.notifier = notifier or LogNotificationSink()
        self.bootstrap = bootstrap or BootstrapData()
        self.scheduler = scheduler
        self.poller = self._new_poller()

    def _new_poller(self) -> ConfirmationPoller:
        return ConfirmationPoller(
            session=TrialSession(),
            trial_client=self.trial_client,
            backend=self.backend,
            notifier=self.notifier,
            bootstrap=self.bootstrap,
            scheduler=self.scheduler,
        )

    @property
    def session(self) -> TrialSession:
        return self.poller.session

    async def aclose(self) -> None:
        await self.poller.stop()
        await self.trial_client.aclose()
        await self.backend.aclose()

    # ─── Operations ──────────────────────────────────────────────────

    async def submit(self, form: Union[TrialRequest, dict]) -> Optional[asyncio.Task]:
        """Create a trial from form data and start waiting for confirmation.

        Returns the poll task, or None if the submission was rejected. A
        rejected submission leaves its text in ``session.error_message``
        (user-correctable) or in a warning notification (server failure).
        """
        try:
            request = parse_form(form)
        except TrialValidationError as e:
            self.session.error_message = e.message
            logger.info("trial_form_invalid", error=e.message)
            return None

        if self.poller.running:
            self.poller.cancel()
            await self.poller.wait()
        self.poller = self._new_poller()
        session = self.session
        session.subscriber = f"{request.first_name} {request.last_name}"
        session.email = request.email

        try:
            trial_link = await self.trial_client.create_trial(request)
        except TrialValidationError as e:
            session.error_message = e.message
            return None
        except TransientServerError as e:
            self.notifier.add_warning(e.message)
            return None

        session.set_status(TrialStatus.SUBMITTED)
        return self.poller.start(trial_link, RetryBudget.default())

    async def resume(self) -> Optional[asyncio.Task]:
        """Continue a trial requested before a page reload.

        Does nothing when no resumption token was bootstrapped.
        """
        trial_key = self.bootstrap.get(settings.resumption_key)
        if not trial_key:
            return None

        session = self.session
        trial_link = self.trial_client.trial_link_for_key(trial_key)
        session.bind_trial_link(trial_link)
        # The key was stored before the reload
        session.trial_key_saved = True

        try:
            details = await self.trial_client.fetch_details(trial_link)
        except TrialError as e:
            logger.warning("trial_resume_failed", trial_link=trial_link, error=e.message)
            session.mark_cancelled()
            return None

        session.subscriber = details.subscriber
        session.email = details.email
        logger.info("trial_resumed", trial_link=trial_link)
        return self.poller.start(trial_link, RetryBudget.default())

    async def resend(self) -> bool:
        return await self.poller.resend()

    def cancel(self) -> None:
        self.poller.cancel()

    async def wait(self) -> Optional[PollOutcome]:
        return await self.poller.wait()
