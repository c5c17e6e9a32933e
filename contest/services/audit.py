# contest/services/audit.py
from __future__ import annotations

import logging
from typing import Optional

from django.db import transaction

logger = logging.getLogger(__name__)


def emit(event_type: str, description: str = "", *, round_number: Optional[int] = None,
         actor: str = "", metadata: Optional[dict] = None) -> None:
    """
    Fire-and-forget audit record, dispatched after the surrounding
    transaction commits. Failures are logged and never reach the caller.
    """
    payload = {
        "event_type": str(event_type),
        "description": description,
        "round_number": round_number,
        "actor": actor or "",
        "metadata": metadata or {},
    }

    def _dispatch():
        from ..tasks import record_audit_event
        try:
            record_audit_event.delay(payload)
        except Exception:
            logger.warning("audit event %s dropped", payload["event_type"], exc_info=True)

    transaction.on_commit(_dispatch)
