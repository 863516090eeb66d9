"""Test fixtures and configuration."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from enterprise_trial.schemas.trial import PendingVerification, TrialSession, TrialToken
from enterprise_trial.trial.bootstrap import BootstrapData
from enterprise_trial.trial.poller import ConfirmationPoller

TRIAL_LINK = "https://augur.test/public/v1/trials/abc123"
RESEND_LINK = "https://augur.test/public/v1/trials/abc123/resend"


def pending(resend_link: str = RESEND_LINK) -> PendingVerification:
    return PendingVerification(resend_link=resend_link)


def token(value: str = "T", already_stored: bool = False) -> TrialToken:
    return TrialToken(token=value, already_stored=already_stored)


class VirtualScheduler:
    """Advances virtual time instantly instead of sleeping."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    async def sleep(self, delay: float, stop: asyncio.Event) -> bool:
        self.sleeps.append(delay)
        if stop.is_set():
            return False
        self.now += delay
        await asyncio.sleep(0)
        return True


class ManualScheduler:
    """Timer that only fires when the test says so, even after a stop."""

    def __init__(self):
        self.armed = asyncio.Event()
        self._fire = asyncio.Event()

    async def sleep(self, delay: float, stop: asyncio.Event) -> bool:
        self.armed.set()
        await self._fire.wait()
        self._fire.clear()
        self.armed.clear()
        return True

    def fire(self) -> None:
        self._fire.set()


class ScriptedFetch:
    """fetch_status replacement that replays results and tracks concurrency."""

    def __init__(self, results):
        self.results = list(results)
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def __call__(self, trial_link: str):
        self.calls.append(trial_link)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        finally:
            self.in_flight -= 1
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def trial_client():
    """Mock remote trial service client."""
    client = MagicMock()
    client.create_trial = AsyncMock(return_value=TRIAL_LINK)
    client.fetch_status = ScriptedFetch([pending()])
    client.fetch_details = AsyncMock()
    client.resend = AsyncMock(return_value=None)
    client.aclose = AsyncMock()
    client.trial_link_for_key = MagicMock(
        side_effect=lambda key: f"https://augur.test/public/v1/trials/{key}"
    )
    return client


@pytest.fixture
def backend():
    """Mock local backend."""
    client = MagicMock()
    client.store_token = AsyncMock(return_value=None)
    client.create_trial_key = AsyncMock(return_value="abc123")
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def bootstrap():
    return BootstrapData()


@pytest.fixture
def scheduler():
    return VirtualScheduler()


@pytest.fixture
def session():
    return TrialSession()


@pytest.fixture
def poller(session, trial_client, backend, notifier, bootstrap, scheduler):
    return ConfirmationPoller(
        session=session,
        trial_client=trial_client,
        backend=backend,
        notifier=notifier,
        bootstrap=bootstrap,
        scheduler=scheduler,
    )
