# audit.py
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger("audit")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def audit(
    action: str,
    status: str = "ok",
    details: dict[str, Any] | None = None,
    actor: str | None = None,
) -> dict[str, Any]:
    """
    Audit logger for invoice actions.

    Emits one record on the "audit" logger:
      created_at, action, status, details (JSON), actor_user_id (optional)

    - Failed actions are logged at WARNING, everything else at INFO.
    - Never breaks app flow: unserializable details fall back to repr().
    """
    payload: dict[str, Any] = {
        "created_at": _now_iso(),
        "action": action,
        "status": status,
    }

    try:
        payload["details"] = json.dumps(details or {}, default=str, sort_keys=True)
    except (TypeError, ValueError):
        payload["details"] = repr(details)

    if actor is not None:
        payload["actor_user_id"] = actor

    level = logging.WARNING if str(status).lower() == "fail" else logging.INFO
    logger.log(level, "%s [%s] %s", action, status, payload["details"], extra={"audit": payload})
    return payload
