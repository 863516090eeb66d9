"""Confirmation poller — the trial confirmation state machine.

Polls the trial link until the email address is confirmed, the retry
budget runs out, the user cancels, or the service returns a hard error.

One poll cycle is one asyncio task. Attempts are strictly sequential:
the delay before attempt N+1 starts only after attempt N was processed,
so at most one status request is in flight per session. Cancellation is
cooperative and observed at the top of each iteration; a response that
arrives after cancellation is discarded.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Optional, Union

import structlog

from enterprise_trial.config import settings
from enterprise_trial.errors import PersistenceFailure, TrialError
from enterprise_trial.notifications.sink import NotificationSink
from enterprise_trial.remote.backend import BackendClient
from enterprise_trial.remote.trial_service import TrialServiceClient
from enterprise_trial.schemas.trial import (
    PendingVerification,
    RetryBudget,
    TrialSession,
    TrialStatus,
    TrialToken,
)
from enterprise_trial.texts import t
from enterprise_trial.trial.bootstrap import BootstrapData
from enterprise_trial.trial.scheduler import AsyncioScheduler, Scheduler

logger = structlog.get_logger()


class PollOutcome(str, Enum):
    """Why a poll cycle ended."""

    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"  # cancelled by the user or stopped for a resend
    EXHAUSTED = "exhausted"  # retry budget reached zero
    HALTED = "halted"  # hard error from the trial service


class ConfirmationPoller:
    """Owns the poll loop for one trial session."""

    def __init__(
        self,
        session: TrialSession,
        trial_client: TrialServiceClient,
        backend: BackendClient,
        notifier: NotificationSink,
        bootstrap: BootstrapData,
        scheduler: Optional[Scheduler] = None,
    ):
        self.session = session
        self.trial_client = trial_client
        self.backend = backend
        self.notifier = notifier
        self.bootstrap = bootstrap
        self.scheduler = scheduler or AsyncioScheduler()
        self._task: Optional[asyncio.Task] = None
        self._stop: Optional[asyncio.Event] = None
        self._cancel_requests = 0

    # ─── Public operations ───────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, trial_link: str, budget: Optional[RetryBudget] = None) -> asyncio.Task:
        """Start polling ``trial_link``. A second call for the same link is a no-op."""
        if self.running:
            if trial_link != self.session.trial_link:
                raise ValueError("poller is already polling another trial")
            logger.debug("trial_poll_already_running", trial_link=trial_link)
            return self._task  # type: ignore[return-value]

        self.session.bind_trial_link(trial_link)
        budget = (budget or RetryBudget.default()).model_copy()
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self._run(budget, self._stop))

        logger.info(
            "trial_poll_started",
            trial_link=trial_link,
            delay_ms=budget.delay_ms,
            retries=budget.retries_remaining,
        )
        return self._task

    def cancel(self) -> None:
        """Cancel the session. The loop stops at its next check."""
        self._cancel_requests += 1
        if self.session.mark_cancelled():
            logger.info("trial_cancelled", trial_link=self.session.trial_link)
        if self._stop is not None:
            self._stop.set()

    async def wait(self) -> Optional[PollOutcome]:
        """Wait for the current poll cycle to finish."""
        if self._task is None:
            return None
        return await self._task

    async def stop(self) -> None:
        """Stop the current cycle without changing the session's outcome."""
        if self.running:
            self._stop.set()  # type: ignore[union-attr]
            await self._task  # type: ignore[misc]

    async def resend(self) -> bool:
        """Resend the confirmation email and restart polling with the resend budget."""
        session = self.session
        if session.confirmed:
            logger.debug("trial_resend_ignored_confirmed")
            return False
        if not session.resend_link or not session.trial_link:
            logger.warning("trial_resend_without_link")
            self.notifier.add_error(t("resend_warning"))
            return False

        await self.stop()

        cancel_requests = self._cancel_requests
        try:
            await self.trial_client.resend(session.resend_link)
        except TrialError as e:
            logger.warning("trial_resend_failed", error=e.message)
            session.mark_cancelled()
            self.notifier.add_error(t("resend_warning"))
            return False

        if self._cancel_requests != cancel_requests:
            # Cancelled while the resend was in flight
            logger.info("trial_resend_superseded_by_cancel")
            session.mark_cancelled()
            return False

        self.notifier.add_success(t("resend_success"))
        session.reopen()
        self.start(session.trial_link, RetryBudget.for_resend())
        return True

    # ─── Loop ────────────────────────────────────────────────────────

    def _stopped_outcome(self) -> PollOutcome:
        return PollOutcome.CONFIRMED if self.session.confirmed else PollOutcome.CANCELLED

    async def _run(self, budget: RetryBudget, stop: asyncio.Event) -> PollOutcome:
        session = self.session
        trial_link = session.trial_link
        if trial_link is None:
            raise RuntimeError("poll cycle started without a trial link")

        while True:
            if session.is_terminal or stop.is_set():
                return self._stopped_outcome()

            if budget.retries_remaining == 0:
                session.mark_cancelled()
                logger.info("trial_poll_exhausted", trial_link=trial_link)
                return PollOutcome.EXHAUSTED

            result: Union[TrialToken, PendingVerification]
            try:
                result = await self.trial_client.fetch_status(trial_link)
            except TrialError as e:
                if session.is_terminal or stop.is_set():
                    return self._stopped_outcome()
                logger.warning("trial_poll_halted", trial_link=trial_link, error=e.message)
                self.notifier.add_warning(e.message)
                return PollOutcome.HALTED

            if session.is_terminal or stop.is_set():
                logger.info("trial_poll_result_discarded", trial_link=trial_link)
                return self._stopped_outcome()

            if isinstance(result, TrialToken):
                await self._confirm(result)
                return PollOutcome.CONFIRMED

            await self._mark_waiting(result)
            budget.retries_remaining -= 1
            logger.debug(
                "trial_poll_pending",
                trial_link=trial_link,
                retries_remaining=budget.retries_remaining,
            )
            await self.scheduler.sleep(budget.delay_seconds, stop)

    async def _confirm(self, result: TrialToken) -> None:
        if not self.session.mark_confirmed():
            return
        self.bootstrap.clear(settings.resumption_key)
        logger.info(
            "trial_confirmed",
            trial_link=self.session.trial_link,
            already_stored=result.already_stored,
        )

        if result.already_stored:
            return
        try:
            await self.backend.store_token(result.token)
        except PersistenceFailure as e:
            # The trial is confirmed remotely; only local bookkeeping failed.
            logger.warning("trial_token_store_failed", error=e.message)
            self.notifier.add_warning(e.message)

    async def _mark_waiting(self, result: PendingVerification) -> None:
        session = self.session
        session.resend_link = result.resend_link
        session.set_status(TrialStatus.WAITING_FOR_EMAIL_VERIFICATION)

        # Once per session, also across resends
        if session.trial_key_saved:
            return
        session.trial_key_saved = True
        try:
            await self.backend.create_trial_key(result.resend_link)
        except PersistenceFailure as e:
            logger.warning("trial_key_store_failed", error=e.message)
            self.notifier.add_warning(e.message)
