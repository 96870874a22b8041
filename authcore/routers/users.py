"""
Users router - the signed-in user's own profile.
"""

from fastapi import APIRouter, Depends

from authcore.deps import get_current_user
from authcore.models.user import User
from authcore.schemas.user import UserOut

router = APIRouter(prefix="/users", tags=["users"])


# ---------------------------------------------------------------------------
# GET /users/me - Get the current user's profile
# ---------------------------------------------------------------------------
@router.get("/me", response_model=UserOut)
def read_current_user(current_user: User = Depends(get_current_user)):
    """
    Get the currently authenticated user's profile, role included.

    The frontend uses the role to decide whether to show admin screens;
    the admin routes still check it server-side.
    """
    return current_user
