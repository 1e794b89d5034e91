from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from gameauth.core.clock import Clock
from gameauth.core.config import settings
from gameauth.services.identity import SqlIdentityBackend

logger = logging.getLogger(__name__)


def ensure_seed_data(db: Session, clock: Clock) -> None:
    """
    Idempotent dev seed: one account from SEED_USERNAME / SEED_EMAIL /
    SEED_PASSWORD when SEED_ENABLED=true.
    """
    if not settings.SEED_ENABLED:
        return

    identity = SqlIdentityBackend(db, clock)
    if identity.find_by_username(settings.SEED_USERNAME):
        return

    result = identity.create_account(
        settings.SEED_USERNAME, settings.SEED_EMAIL, settings.SEED_PASSWORD
    )
    if not result.ok:
        db.rollback()
        logger.warning("Seed account not created: %s", ", ".join(result.errors))
        return
    db.commit()
    logger.info("Seeded dev account %s", settings.SEED_USERNAME)
