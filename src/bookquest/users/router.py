"""Account management router — /api/v1/users/me settings, password, deletion."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from bookquest.auth.dependencies import get_current_user
from bookquest.auth.router import user_response
from bookquest.auth.schemas import ChangePasswordRequest, SettingsUpdateRequest, UserResponse
from bookquest.auth.service import change_password
from bookquest.database import get_session
from bookquest.db.models import User
from bookquest.users.service import delete_account, update_settings

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@router.get("/me/settings", response_model=UserResponse)
async def get_my_settings(user: User = Depends(get_current_user)) -> UserResponse:
    """Current account details."""
    return user_response(user)


@router.put("/me/settings", response_model=UserResponse)
async def put_my_settings(
    body: SettingsUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UserResponse:
    """Update display name and email."""
    user = await update_settings(db, user, name=body.name, email=body.email)
    await db.commit()
    return user_response(user)


@router.put("/me/password")
async def put_my_password(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Change password. The current password must verify."""
    await change_password(db, user, body.current_password, body.new_password)
    await db.commit()
    return {"message": "Password updated"}


# ---------------------------------------------------------------------------
# Deletion
# ---------------------------------------------------------------------------


@router.delete("/me", status_code=204)
async def delete_me(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Delete the account with its reading history and badges."""
    await delete_account(db, user.id)
    return Response(status_code=204)
