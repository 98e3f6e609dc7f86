from typing import Optional
from sqlalchemy.orm import Session
from models import AdminLog, User


def log_admin_action(db: Session, admin: User, action: str, method: Optional[str] = None, path: Optional[str] = None, meta: Optional[dict] = None):
    db.add(AdminLog(
        admin_id=admin.id if admin else None,
        admin_name=(admin.email or admin.name) if admin else "",
        action=action,
        method=method,
        path=path,
        meta=meta
    ))
    db.commit()
