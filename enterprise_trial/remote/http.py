"""Shared helpers for the httpx-based clients."""

from __future__ import annotations

from typing import Any, Optional

import httpx

from enterprise_trial.config import settings


def build_client(base_url: str = "", headers: Optional[dict[str, str]] = None) -> httpx.AsyncClient:
    """Create an AsyncClient with the configured timeout."""
    return httpx.AsyncClient(
        base_url=base_url,
        headers=headers,
        timeout=settings.http_timeout_seconds,
        follow_redirects=True,
    )


def json_body(response: httpx.Response) -> Optional[dict[str, Any]]:
    """Decode a JSON object body, or None if it is not one."""
    try:
        data = response.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def error_text(body: Optional[dict[str, Any]], fallback: str) -> str:
    """Pick the user-facing message out of an error body."""
    if not body:
        return fallback
    if body.get("_type") == "Error" and body.get("message"):
        return str(body["message"])
    if body.get("description"):
        return str(body["description"])
    return fallback
