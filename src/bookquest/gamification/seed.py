"""Badge and category seed data, upserted on startup."""

from __future__ import annotations

import logging

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from bookquest.db.models import Badge, Category

logger = logging.getLogger(__name__)

BADGE_SEED_DATA: list[dict] = [
    # Books read
    {
        "slug": "premiere-lecture",
        "name": "Première lecture",
        "description": "Terminez votre tout premier livre",
        "icon": "book-open",
        "type": "books_read",
        "criteria": {"books_read": 1},
        "sort_order": 1,
    },
    {
        "slug": "lecteur-assidue",
        "name": "Lecteur assidu",
        "description": "Terminez 5 livres",
        "icon": "books",
        "type": "books_read",
        "criteria": {"books_read": 5},
        "sort_order": 2,
    },
    {
        "slug": "bibliophile",
        "name": "Bibliophile",
        "description": "Terminez 20 livres",
        "icon": "library",
        "type": "books_read",
        "criteria": {"books_read": 20},
        "sort_order": 3,
    },
    # Book length
    {
        "slug": "marathon-lecture",
        "name": "Marathon de lecture",
        "description": "Terminez un livre de plus de 300 pages",
        "icon": "timer",
        "type": "book_length",
        "criteria": {"min_pages_exclusive": 300},
        "sort_order": 4,
    },
    {
        "slug": "devoreur-paves",
        "name": "Dévoreur de pavés",
        "description": "Terminez un livre de plus de 500 pages",
        "icon": "brick",
        "type": "book_length",
        "criteria": {"min_pages_exclusive": 500},
        "sort_order": 5,
    },
    # Level
    {
        "slug": "niveau-expert",
        "name": "Niveau expert",
        "description": "Atteignez le niveau 5",
        "icon": "star",
        "type": "level",
        "criteria": {"level": 5},
        "sort_order": 6,
    },
]

CATEGORY_SEED_DATA: list[str] = [
    "Bande dessinée",
    "Biographie",
    "Essai",
    "Fantasy",
    "Histoire",
    "Poésie",
    "Policier",
    "Roman",
    "Science-fiction",
    "Sciences",
]


def _insert_for(db: AsyncSession):
    """Dialect-specific INSERT construct supporting ON CONFLICT."""
    if db.bind.dialect.name == "sqlite":
        return sqlite_insert
    return pg_insert


async def seed_badges(db: AsyncSession) -> int:
    """Upsert the badge catalog. Returns number of badges seeded."""
    insert = _insert_for(db)
    seeded = 0
    for badge_data in BADGE_SEED_DATA:
        stmt = insert(Badge).values(**badge_data, is_active=True)
        stmt = stmt.on_conflict_do_update(
            index_elements=["slug"],
            set_={
                "name": stmt.excluded.name,
                "description": stmt.excluded.description,
                "icon": stmt.excluded.icon,
                "type": stmt.excluded.type,
                "criteria": stmt.excluded.criteria,
                "sort_order": stmt.excluded.sort_order,
            },
        )
        await db.execute(stmt)
        seeded += 1

    await db.commit()
    logger.info("Seeded %d badge definitions", seeded)
    return seeded


async def seed_categories(db: AsyncSession) -> int:
    """Insert missing categories. Returns number of categories seeded."""
    insert = _insert_for(db)
    for name in CATEGORY_SEED_DATA:
        stmt = insert(Category).values(name=name).on_conflict_do_nothing(index_elements=["name"])
        await db.execute(stmt)

    await db.commit()
    logger.info("Seeded %d categories", len(CATEGORY_SEED_DATA))
    return len(CATEGORY_SEED_DATA)
