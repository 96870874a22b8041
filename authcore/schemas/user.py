"""
User schemas - what user data the API exposes (never the password hash).
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr

from authcore.models.user import Role


class UserOut(BaseModel):
    """
    Schema for user data in API responses.

    Example response:
    {
        "id": "550e8400-e29b-41d4-a716-446655440000",
        "email": "ana@example.com",
        "display_name": "Ana",
        "role": "user",
        "is_active": true,
        "created_at": "2025-12-02T10:30:00Z"
    }
    """
    # from_attributes: routes can return the SQLAlchemy User directly
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: EmailStr
    display_name: str | None
    role: Role
    is_active: bool
    created_at: datetime


class RoleUpdate(BaseModel):
    """Body of PUT /admin/users/{user_id}/role. Unknown roles are a 422."""
    role: Role
