"""Pydantic response models for gamification endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


# --- Badge ---


class BadgeResponse(BaseModel):
    id: int
    slug: str
    name: str
    description: str
    icon: str | None = None
    type: str
    criteria: dict[str, Any] = {}


class AllBadgesResponse(BaseModel):
    badges: list[BadgeResponse]


class EarnedBadgeResponse(BaseModel):
    id: int
    slug: str
    name: str
    description: str
    icon: str | None = None
    type: str
    earned_at: datetime


class UserBadgesResponse(BaseModel):
    earned: list[EarnedBadgeResponse]
    total_available: int
    total_earned: int


class BadgeCheckResponse(BaseModel):
    message: str
    newly_unlocked_badges: list[str]


# --- Levels ---


class LevelEntry(BaseModel):
    level: int
    min_points: int


class AllLevelsResponse(BaseModel):
    levels: list[LevelEntry]
