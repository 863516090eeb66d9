"""Page bootstrap data — values rendered into the page by the backend."""

from __future__ import annotations

from typing import Any, Mapping, Optional

import structlog

logger = structlog.get_logger()


class BootstrapData:
    """Read-only lookup of bootstrap values, injected at construction.

    Values may be plain strings or ``{"value": ...}`` objects. A key can
    be cleared once it must no longer be used (e.g. after confirmation).
    """

    def __init__(self, values: Optional[Mapping[str, Any]] = None):
        self._values = dict(values or {})

    def get(self, key: str) -> Optional[str]:
        raw = self._values.get(key)
        if isinstance(raw, Mapping):
            raw = raw.get("value")
        return str(raw) if raw else None

    def clear(self, key: str) -> None:
        if self._values.pop(key, None) is not None:
            logger.debug("bootstrap_value_cleared", key=key)
