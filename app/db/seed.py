"""Database seeding helpers."""

import logging

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import get_password_hash
from app.services.user_service import create_user, get_user_by_email

logger = logging.getLogger(__name__)


def ensure_admin_user(session: Session) -> bool:
    """Create the bootstrap admin from ADMIN_EMAIL/ADMIN_PASSWORD when configured.

    Returns True when an admin account with that email exists after the call.
    """
    admin_email = settings.admin_email.strip().lower()
    if get_user_by_email(db=session, email=admin_email) is not None:
        logger.info("[BOOTSTRAP] Admin exists")
        return True

    if not settings.admin_password:
        logger.info("[BOOTSTRAP] ADMIN_PASSWORD not set; skipping admin bootstrap.")
        return False

    create_user(
        db=session,
        username=admin_email,
        email=admin_email,
        hashed_password=get_password_hash(settings.admin_password),
        role="ADMIN",
    )
    logger.warning("[SECURITY] Bootstrap admin account created for %s.", admin_email)
    return True
