"""Opik SDK client lifecycle for the API process and the scheduler worker."""
from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Dict, Optional

from habitual.core.config import settings

try:
    from opik import Opik
except ImportError:  # pragma: no cover
    Opik = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

_client: Optional["Opik"] = None
_client_lock = Lock()
_init_attempted = False


def _client_options() -> Dict[str, Any]:
    options: Dict[str, Any] = {"project_name": settings.opik_project, "api_key": settings.opik_api_key}
    if settings.opik_workspace:
        options["workspace"] = settings.opik_workspace
    return options


def init_opik() -> Optional["Opik"]:
    """Create the shared client on first call; returns None when tracing is off."""
    global _client, _init_attempted

    if Opik is None:
        return None

    with _client_lock:
        if _client is not None or _init_attempted:
            return _client
        _init_attempted = True

    if not settings.opik_enabled:
        logger.debug("Opik disabled; traces and metrics are no-ops.")
        return None

    if not settings.opik_api_key:
        logger.warning("OPIK_ENABLED is true but OPIK_API_KEY is missing; skipping Opik init.")
        return None

    try:
        client = Opik(**_client_options())
    except Exception as exc:  # pragma: no cover - third-party init failure
        logger.warning("Failed to initialize Opik, tracing will be disabled: %s", exc)
        return None

    logger.info("Opik enabled (project=%s).", settings.opik_project)
    _client = client
    return _client


def get_opik_client() -> Optional["Opik"]:
    """Return the cached client, initializing it lazily for worker processes."""
    if _client is not None:
        return _client
    return init_opik()


def shutdown_opik() -> None:
    """Flush buffered traces and forget the client so a later init starts fresh."""
    global _client, _init_attempted

    with _client_lock:
        client, _client = _client, None
        _init_attempted = False

    if client is None:
        return
    try:
        client.flush()
    except Exception as exc:  # pragma: no cover - flushing must not block shutdown
        logger.warning("Failed to flush Opik traces on shutdown: %s", exc)
