"""Persistence bridge — hands trial data to the local backend."""

from __future__ import annotations

from typing import Optional

import httpx
import structlog

from enterprise_trial.config import settings
from enterprise_trial.errors import PersistenceFailure
from enterprise_trial.remote.http import build_client, error_text, json_body
from enterprise_trial.texts import t

logger = structlog.get_logger()


def trial_key_from_link(resend_link: str) -> str:
    """Extract the trial key from ``.../public/v1/trials/<key>/resend``."""
    segments = [s for s in httpx.URL(resend_link).path.split("/") if s]
    try:
        key = segments[segments.index("trials") + 1]
    except (ValueError, IndexError) as e:
        raise PersistenceFailure(t("internal_error")) from e
    return key


class BackendClient:
    """Stores confirmed tokens and trial keys in the local application."""

    def __init__(self, http: Optional[httpx.AsyncClient] = None):
        if http is None:
            headers = {}
            if settings.backend_auth_token:
                headers["Authorization"] = f"Bearer {settings.backend_auth_token}"
            http = build_client(settings.backend_base_url, headers=headers)
        self.http = http

    async def aclose(self) -> None:
        await self.http.aclose()

    async def _post(self, path: str, payload: dict) -> None:
        try:
            response = await self.http.post(path, json=payload)
        except httpx.RequestError as e:
            logger.warning("backend_unreachable", path=path, error=str(e))
            raise PersistenceFailure(t("internal_error")) from e

        if not response.is_success:
            logger.warning("backend_rejected", path=path, status=response.status_code)
            raise PersistenceFailure(
                error_text(json_body(response), t("internal_error")),
                status_code=response.status_code,
            )

    async def store_token(self, token: str) -> None:
        """POST /admin/enterprise with the encoded token."""
        await self._post("/admin/enterprise", {"enterprise_token": {"encoded_token": token}})
        logger.info("enterprise_token_stored")

    async def create_trial_key(self, resend_link: str) -> str:
        """Remember the requested trial so a reload can resume it."""
        trial_key = trial_key_from_link(resend_link)
        await self._post("/admin/enterprise/create_trial_key", {"trial_key": trial_key})
        logger.info("trial_key_stored", trial_key=trial_key)
        return trial_key
