import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger("gameauth.audit")


@dataclass
class AuditEvent:
    action: str
    user_id: Optional[str] = None
    username: Optional[str] = None
    detail: Optional[str] = None
    level: int = logging.INFO
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def record_audit_event(event: AuditEvent) -> None:
    """
    Audit events are only logged; nothing is persisted.

    Never pass passwords or token values in ``detail``.
    """
    logger.log(
        event.level,
        "audit_event action=%s user_id=%s username=%s detail=%s",
        event.action,
        event.user_id,
        event.username,
        event.detail,
    )
