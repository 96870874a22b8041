"""
Auth schemas - request/response bodies for sign-in and sign-out.
"""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class UserRegister(BaseModel):
    """
    Schema for POST /auth/register request body.

    Example request body:
    {
        "email": "ana@example.com",
        "password": "correct horse battery",
        "display_name": "Ana"
    }
    """
    email: EmailStr

    # Hashed with bcrypt before it touches the database
    password: str = Field(..., min_length=8)

    display_name: str | None = None


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class SessionToken(BaseModel):
    """
    Schema for POST /auth/login response.

    The same value is also set as the session cookie. API clients send it
    back as "Authorization: Bearer <access_token>".
    """
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
