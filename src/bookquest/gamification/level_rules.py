"""Level thresholds and point tiers.

Levels only ever move up: a user keeps their level even if the thresholds
below it would compute a lower one.
"""

from __future__ import annotations

# Highest threshold first; level 1 is the floor for every account.
LEVEL_THRESHOLDS: list[dict] = [
    {"level": 5, "min_points": 500},
    {"level": 3, "min_points": 200},
    {"level": 2, "min_points": 50},
    {"level": 1, "min_points": 0},
]

SHORT_BOOK_MAX_PAGES = 149
MEDIUM_BOOK_MAX_PAGES = 300

POINTS_SHORT_BOOK = 10
POINTS_MEDIUM_BOOK = 20
POINTS_LONG_BOOK = 30


def points_for_pages(total_pages: int) -> int:
    """Points awarded for completing a book of ``total_pages`` pages."""
    if total_pages <= SHORT_BOOK_MAX_PAGES:
        return POINTS_SHORT_BOOK
    if total_pages <= MEDIUM_BOOK_MAX_PAGES:
        return POINTS_MEDIUM_BOOK
    return POINTS_LONG_BOOK


def threshold_level(total_points: int) -> int:
    """Highest level whose threshold ``total_points`` meets."""
    for threshold in LEVEL_THRESHOLDS:
        if total_points >= threshold["min_points"]:
            return threshold["level"]
    return 1


def level_for(total_points: int, current_level: int) -> int:
    """Level after a points change. Never lower than ``current_level``."""
    return max(current_level, threshold_level(total_points))


def level_progress(total_points: int, current_level: int) -> dict:
    """Describe the next threshold above the user's level.

    ``next_level`` is None once the top threshold is reached.
    """
    upcoming = [t for t in LEVEL_THRESHOLDS if t["level"] > current_level]
    if not upcoming:
        return {
            "level": current_level,
            "next_level": None,
            "next_level_points": None,
            "points_to_next_level": 0,
        }

    nearest = min(upcoming, key=lambda t: t["level"])
    return {
        "level": current_level,
        "next_level": nearest["level"],
        "next_level_points": nearest["min_points"],
        "points_to_next_level": max(0, nearest["min_points"] - total_points),
    }
