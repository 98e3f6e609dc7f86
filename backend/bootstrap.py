from __future__ import annotations

import logging
import os
from datetime import datetime, timezone

from database import Base, engine, get_db
from migrations import (
    ensure_admin_roles,
    ensure_quiz_attempt_unique_index,
    ensure_users_phone_number_column,
    ensure_users_start_number_unique_index,
)
from models import SystemConfig

logger = logging.getLogger(__name__)

MIGRATION_MARKER_KEY = "migration:backend_bootstrap:v1"


def _admin_emails() -> list[str]:
    return [email for email in os.environ.get("ADMIN_EMAILS", "").split(",") if email.strip()]


def has_bootstrap_marker() -> bool:
    SystemConfig.__table__.create(bind=engine, checkfirst=True)
    db = next(get_db())
    try:
        marker = db.query(SystemConfig).filter(SystemConfig.key == MIGRATION_MARKER_KEY).first()
        return marker is not None
    finally:
        db.close()


def set_bootstrap_marker() -> None:
    db = next(get_db())
    try:
        marker = db.query(SystemConfig).filter(SystemConfig.key == MIGRATION_MARKER_KEY).first()
        value = datetime.now(timezone.utc).isoformat()
        if marker:
            marker.value = value
        else:
            db.add(SystemConfig(key=MIGRATION_MARKER_KEY, value=value))
        db.commit()
    finally:
        db.close()


def clear_bootstrap_marker() -> bool:
    db = next(get_db())
    try:
        marker = db.query(SystemConfig).filter(SystemConfig.key == MIGRATION_MARKER_KEY).first()
        if not marker:
            return False
        db.delete(marker)
        db.commit()
        return True
    finally:
        db.close()


def run_bootstrap_migrations() -> None:
    Base.metadata.create_all(bind=engine)
    ensure_users_phone_number_column(engine)
    ensure_quiz_attempt_unique_index(engine)
    ensure_users_start_number_unique_index(engine)

    db = next(get_db())
    try:
        promoted = ensure_admin_roles(db, _admin_emails())
        if promoted:
            logger.info("Promoted %d users to admin from ADMIN_EMAILS", promoted)
    finally:
        db.close()
