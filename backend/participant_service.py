import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from errors import AlreadyRegisteredError, NotFoundError, StartNumberTakenError
from models import User, UNREGISTERED_NAME

logger = logging.getLogger(__name__)


def _ensure_start_number_free(db: Session, start_number: str, user_id: str) -> None:
    # Telemetry is joined on the start number, so two holders would share points.
    holder = db.query(User).filter(User.name == start_number, User.id != user_id).first()
    if holder:
        raise StartNumberTakenError()


def _assign_start_number(db: Session, user: User, start_number: str) -> User:
    _ensure_start_number_free(db, start_number, user.id)
    user.name = start_number
    try:
        db.commit()
    except IntegrityError as exc:
        # A concurrent request claimed the same number after the check.
        db.rollback()
        raise StartNumberTakenError() from exc
    db.refresh(user)
    return user


def register_start_number(db: Session, user: User, start_number: int) -> User:
    if user.name != UNREGISTERED_NAME:
        raise AlreadyRegisteredError()
    user = _assign_start_number(db, user, str(start_number))
    logger.info("User %s registered start number %s", user.id, user.name)
    return user


def change_start_number(db: Session, user_id: str, new_number: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return _assign_start_number(db, user, new_number)
