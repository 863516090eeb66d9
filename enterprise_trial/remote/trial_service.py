"""Remote trial service client — create, poll and resend trials.

Every operation is a single round trip. None of them retries; the
confirmation poller owns the retry policy.
"""

from __future__ import annotations

from typing import Any, Optional, Union

import httpx
import structlog
from pydantic import ValidationError

from enterprise_trial.config import settings
from enterprise_trial.errors import TransientServerError, TrialValidationError
from enterprise_trial.remote.http import build_client, error_text, json_body
from enterprise_trial.schemas.trial import (
    PendingVerification,
    TrialDetails,
    TrialRequest,
    TrialToken,
)
from enterprise_trial.texts import t

logger = structlog.get_logger()

TRIALS_PATH = "/public/v1/trials"
WAITING_IDENTIFIER = "waiting_for_email_verification"


class TrialServiceClient:
    """Async client for the remote licensing service."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or settings.trial_service_url).rstrip("/")
        self.http = http or build_client()

    async def aclose(self) -> None:
        await self.http.aclose()

    def trial_link_for_key(self, trial_key: str) -> str:
        """Trial status URL for a stored trial key."""
        return f"{self.base_url}{TRIALS_PATH}/{trial_key}"

    def _absolute(self, href: Any, status_code: Optional[int] = None) -> str:
        if not isinstance(href, str) or not href:
            raise TransientServerError(t("internal_error"), status_code=status_code)
        try:
            return str(httpx.URL(self.base_url).join(href))
        except (TypeError, httpx.InvalidURL) as e:
            raise TransientServerError(t("internal_error"), status_code=status_code) from e

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return await self.http.request(method, url, **kwargs)
        except httpx.RequestError as e:
            logger.warning("trial_service_unreachable", method=method, url=url, error=str(e))
            raise TransientServerError(t("internal_error")) from e

    async def create_trial(self, request: TrialRequest) -> str:
        """Create a trial and return the link to its status endpoint.

        Raises:
            TrialValidationError: invalid email or a trial already exists (400/422)
            TransientServerError: any other failure
        """
        response = await self._request(
            "POST", f"{self.base_url}{TRIALS_PATH}", json=request.to_payload()
        )
        body = json_body(response)

        if response.status_code in (400, 422):
            message = (body or {}).get("description") or t("internal_error")
            logger.info("trial_rejected", status=response.status_code, message=message)
            raise TrialValidationError(message, status_code=response.status_code)

        if not response.is_success:
            logger.warning("trial_create_failed", status=response.status_code)
            raise TransientServerError(
                error_text(body, t("internal_error")), status_code=response.status_code
            )

        try:
            href = body["_links"]["self"]["href"]  # type: ignore[index]
        except (KeyError, TypeError) as e:
            raise TransientServerError(t("internal_error")) from e

        trial_link = self._absolute(href, response.status_code)
        logger.info("trial_created", trial_link=trial_link)
        return trial_link

    async def fetch_status(self, trial_link: str) -> Union[TrialToken, PendingVerification]:
        """Fetch the token for a trial, or learn that it is still pending.

        Raises:
            TransientServerError: unexpected status or payload
        """
        response = await self._request("GET", trial_link)
        body = json_body(response)

        if response.is_success:
            if not body or not body.get("token"):
                raise TransientServerError(t("internal_error"), status_code=response.status_code)
            try:
                return TrialToken(
                    token=body["token"],
                    already_stored=bool(body.get("token_retrieved")),
                )
            except ValidationError as e:
                raise TransientServerError(
                    t("internal_error"), status_code=response.status_code
                ) from e

        if response.status_code == 422 and body and body.get("identifier") == WAITING_IDENTIFIER:
            try:
                href = body["_links"]["resend"]["href"]
            except (KeyError, TypeError) as e:
                raise TransientServerError(t("internal_error"), status_code=422) from e
            return PendingVerification(resend_link=self._absolute(href, 422))

        logger.warning("trial_status_failed", status=response.status_code, trial_link=trial_link)
        raise TransientServerError(
            error_text(body, t("internal_error")), status_code=response.status_code
        )

    async def fetch_details(self, trial_link: str) -> TrialDetails:
        """Subscriber data submitted for the trial."""
        response = await self._request("GET", f"{trial_link.rstrip('/')}/details")
        body = json_body(response)
        if not response.is_success or body is None:
            raise TransientServerError(
                error_text(body, t("internal_error")), status_code=response.status_code
            )
        try:
            return TrialDetails.model_validate(body)
        except ValidationError as e:
            raise TransientServerError(
                t("internal_error"), status_code=response.status_code
            ) from e

    async def resend(self, resend_link: str) -> None:
        """Ask the service to send the confirmation email again."""
        response = await self._request("POST", resend_link, json={})
        if not response.is_success:
            logger.warning("trial_resend_failed", status=response.status_code)
            raise TransientServerError(
                error_text(json_body(response), t("resend_warning")),
                status_code=response.status_code,
            )
        logger.info("trial_resend_requested", resend_link=resend_link)
