"""
Admin router - user management, restricted to the "admin" role.

Every route depends on require_role(Role.ADMIN): no session is 401, a
session for any other role is 403, and the handler never runs.
"""

import logging
import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from authcore.db.session import get_db
from authcore.deps import require_role
from authcore.models.user import Role, User
from authcore.schemas.user import RoleUpdate, UserOut


logger = logging.getLogger("authcore.routers.admin")

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/users", response_model=List[UserOut])
def list_users(
    admin: User = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    """List every user, oldest first."""
    return db.query(User).order_by(User.created_at).all()


@router.put("/users/{user_id}/role", response_model=UserOut)
def update_user_role(
    user_id: uuid.UUID,
    payload: RoleUpdate,
    admin: User = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    """
    Set a user's role.

    Raises:
        404 Not Found: If the user does not exist
    """
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    previous = user.role
    user.role = payload.role.value
    db.commit()
    db.refresh(user)

    logger.info(f"Admin {admin.id} changed role of user {user.id}: {previous} -> {user.role}")
    return user
