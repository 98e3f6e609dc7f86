from typing import Optional
from fastapi import Depends, HTTPException, status

from auth import get_session
from models import User, UserRole, UNREGISTERED_NAME


def require_user(user: Optional[User] = Depends(get_session)) -> User:
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_registered_user(user: User = Depends(require_user)) -> User:
    if user.name == UNREGISTERED_NAME:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Start number not registered")
    return user


def require_admin(user: User = Depends(require_user)) -> User:
    if user.role != UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return user
