"""Gamification API endpoints — badges and levels."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bookquest.auth.dependencies import get_current_user
from bookquest.database import get_session
from bookquest.db.models import User, UserBadge
from bookquest.gamification.badge_evaluator import evaluate_badges
from bookquest.gamification.badge_service import count_active_badges, get_earned_badges, list_active_badges
from bookquest.gamification.level_rules import LEVEL_THRESHOLDS
from bookquest.gamification.schemas import (
    AllBadgesResponse,
    AllLevelsResponse,
    BadgeCheckResponse,
    BadgeResponse,
    EarnedBadgeResponse,
    LevelEntry,
    UserBadgesResponse,
)
from bookquest.redis_client import get_optional_redis

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


def earned_badge_response(user_badge: UserBadge) -> EarnedBadgeResponse:
    """Build an EarnedBadgeResponse from a UserBadge and its catalog entry."""
    badge = user_badge.badge
    return EarnedBadgeResponse(
        id=badge.id,
        slug=badge.slug,
        name=badge.name,
        description=badge.description,
        icon=badge.icon,
        type=badge.type,
        earned_at=user_badge.earned_at,
    )


# ── Public endpoints ──


@router.get("/badges", response_model=AllBadgesResponse)
async def list_badges(db: AsyncSession = Depends(get_session)):
    """Active badges in catalog order."""
    badges = await list_active_badges(db)
    return AllBadgesResponse(
        badges=[
            BadgeResponse(
                id=b.id,
                slug=b.slug,
                name=b.name,
                description=b.description,
                icon=b.icon,
                type=b.type,
                criteria=b.criteria or {},
            )
            for b in badges
        ]
    )


@router.get("/levels", response_model=AllLevelsResponse)
async def list_levels():
    """Level thresholds, lowest first."""
    return AllLevelsResponse(
        levels=[
            LevelEntry(level=t["level"], min_points=t["min_points"])
            for t in sorted(LEVEL_THRESHOLDS, key=lambda t: t["level"])
        ]
    )


# ── Authenticated endpoints ──


@router.get("/users/me/badges", response_model=UserBadgesResponse)
async def get_my_badges(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Current user's earned badges."""
    earned = await get_earned_badges(db, user.id)
    return UserBadgesResponse(
        earned=[earned_badge_response(ub) for ub in earned],
        total_available=await count_active_badges(db),
        total_earned=len(earned),
    )


@router.post("/users/me/badges/check", response_model=BadgeCheckResponse)
async def check_my_badges(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Re-evaluate badges for the current user. Safe to call repeatedly."""
    unlocked = await evaluate_badges(db, user.id, get_optional_redis())
    return BadgeCheckResponse(message="Badge check complete", newly_unlocked_badges=unlocked)
