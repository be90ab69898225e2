#!/usr/bin/env python3
"""
Seed the database with demo users and warehouse bins.

Usage:
    uv run python scripts/seed_demo_data.py --dry-run   # no writes
    uv run python scripts/seed_demo_data.py --confirm   # write to DB
    uv run python scripts/seed_demo_data.py --confirm --token admin@example.com

Requirements: migrations applied (alembic upgrade head), DB reachable.
"""

import asyncio
import logging
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth.jwt import create_access_token
from src.core.auth.models import User, UserRole
from src.core.config import settings
from src.core.database.session import session_scope
from src.core.logging_setup import configure_logging
from src.modules.bins.models import Bin

logger = logging.getLogger("seed")

DEMO_USERS = [
    ("superadmin@example.com", "Super Admin", UserRole.SUPER_ADMIN),
    ("admin@example.com", "Warehouse Admin", UserRole.ADMIN),
    ("receiver@example.com", "Dock Receiver", UserRole.USER),
]

# Aisles A-C, shelves 01-05, plus receiving and returns staging
DEMO_BINS = [f"{aisle}-{shelf:02d}" for aisle in "ABC" for shelf in range(1, 6)] + [
    "RECEIVING",
    "RETURNS",
]


async def seed_users(session: AsyncSession) -> dict[str, User]:
    result = await session.execute(select(User))
    existing = {u.email: u for u in result.scalars().all()}
    created = 0
    for email, full_name, role in DEMO_USERS:
        if email in existing:
            continue
        user = User(email=email, full_name=full_name, role=role.value, is_active=True)
        session.add(user)
        existing[email] = user
        created += 1
    await session.flush()
    logger.info("Users: %d created, %d already present", created, len(existing) - created)
    return existing


async def seed_bins(session: AsyncSession) -> None:
    result = await session.execute(select(Bin.name))
    existing = set(result.scalars().all())
    missing = [name for name in DEMO_BINS if name not in existing]
    session.add_all(Bin(name=name, is_active=True) for name in missing)
    await session.flush()
    logger.info("Bins: %d created, %d already present", len(missing), len(existing))


class _DryRunRollback(Exception):
    pass


async def run_seed(dry_run: bool, token_for: str | None) -> None:
    try:
        async with session_scope() as session:
            users = await seed_users(session)
            await seed_bins(session)
            if token_for:
                user = users.get(token_for)
                if user is None:
                    logger.error("No user with email %s", token_for)
                else:
                    token = create_access_token(user.id, user.role)
                    logger.info("Access token for %s:\n%s", token_for, token)
            if dry_run:
                raise _DryRunRollback()
    except _DryRunRollback:
        logger.info("[DRY-RUN] Rolled back, no data written.")
        return
    logger.info("Seed completed successfully.")


async def main() -> None:
    import argparse
    parser = argparse.ArgumentParser(description="Seed database with demo users and bins")
    parser.add_argument("--dry-run", action="store_true", help="Do not commit")
    parser.add_argument("--confirm", action="store_true", help="Commit changes")
    parser.add_argument("--token", metavar="EMAIL", help="Log an access token for this user")
    args = parser.parse_args()
    configure_logging(settings.log_level)
    if not args.dry_run and not args.confirm:
        logger.error("Use --dry-run or --confirm")
        sys.exit(1)

    logger.info(
        "Database: %s", settings.database_url.split("@")[-1] if "@" in settings.database_url else "?"
    )
    logger.info("Mode: %s", "DRY-RUN" if args.dry_run else "CONFIRM")
    await run_seed(dry_run=args.dry_run, token_for=args.token)


if __name__ == "__main__":
    asyncio.run(main())
