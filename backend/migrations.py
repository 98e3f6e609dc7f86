import logging
from typing import Iterable

from sqlalchemy import inspect, text
from sqlalchemy.orm import Session
from models import User, UserRole, UNREGISTERED_NAME

logger = logging.getLogger(__name__)


def _table_exists(conn, table_name: str) -> bool:
    return inspect(conn).has_table(table_name)


def _column_exists(conn, table_name: str, column_name: str) -> bool:
    return any(col["name"] == column_name for col in inspect(conn).get_columns(table_name))


def ensure_users_phone_number_column(engine):
    with engine.begin() as conn:
        if _table_exists(conn, "users") and not _column_exists(conn, "users", "phone_number"):
            conn.execute(text("ALTER TABLE users ADD COLUMN phone_number VARCHAR(32)"))
            logger.info("Added users.phone_number column")


def ensure_quiz_attempt_unique_index(engine):
    """Collapse duplicate attempts (keeping the first) and enforce one per user and question."""
    with engine.begin() as conn:
        if not _table_exists(conn, "quiz_attempts"):
            return
        removed = conn.execute(
            text(
                """
                DELETE FROM quiz_attempts
                WHERE id NOT IN (
                    SELECT MIN(id) FROM quiz_attempts GROUP BY user_id, question_id
                )
                """
            )
        ).rowcount
        if removed:
            logger.warning("Removed %d duplicate quiz attempts", removed)
        conn.execute(
            text(
                """
                CREATE UNIQUE INDEX IF NOT EXISTS uq_quiz_attempts_user_question
                ON quiz_attempts (user_id, question_id)
                """
            )
        )


def ensure_users_start_number_unique_index(engine) -> bool:
    """One holder per registered start number; unregistered users are exempt.

    Existing duplicates are left untouched and the index is skipped, since
    picking a holder needs an organizer.
    """
    with engine.begin() as conn:
        if not _table_exists(conn, "users"):
            return False
        duplicates = conn.execute(
            text(
                """
                SELECT name FROM users
                WHERE name <> :unregistered
                GROUP BY name HAVING COUNT(*) > 1
                """
            ),
            {"unregistered": UNREGISTERED_NAME},
        ).scalars().all()
        if duplicates:
            logger.error("Start numbers held by several users, unique index skipped: %s", ", ".join(duplicates))
            return False
        conn.execute(
            text(
                f"""
                CREATE UNIQUE INDEX IF NOT EXISTS uq_users_start_number
                ON users (name) WHERE name <> '{UNREGISTERED_NAME}'
                """
            )
        )
    return True


def ensure_admin_roles(db: Session, emails: Iterable[str]) -> int:
    wanted = {email.strip().lower() for email in emails if email and email.strip()}
    if not wanted:
        return 0
    promoted = 0
    for user in db.query(User).filter(User.email.isnot(None)).all():
        if user.email.lower() in wanted and user.role != UserRole.ADMIN:
            user.role = UserRole.ADMIN
            promoted += 1
    db.commit()
    return promoted
