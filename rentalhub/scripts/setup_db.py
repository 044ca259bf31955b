"""
RentalHub Backend — Development Schema Setup
==============================================

What:  Creates every table straight from the ORM metadata, plus the
       btree_gist extension and the booking overlap exclusion constraint.
Who:   Developers spinning up a throwaway database. Real deployments run
       `alembic upgrade head` instead.

Usage:
    rentalhub-setup-db            # create missing tables
    rentalhub-setup-db --drop     # drop everything first
"""

import argparse
import asyncio
import logging
import sys

from sqlalchemy import text

import rentalhub.models  # noqa: F401
from rentalhub.database import Base, dispose_engine, engine

logger = logging.getLogger("rentalhub.setup_db")

OVERLAP_CONSTRAINT_SQL = """
DO $$
BEGIN
    IF NOT EXISTS (
        SELECT 1 FROM pg_constraint WHERE conname = 'ex_bookings_no_overlap'
    ) THEN
        ALTER TABLE bookings
        ADD CONSTRAINT ex_bookings_no_overlap
        EXCLUDE USING gist (
            court_id WITH =,
            tstzrange(start_datetime, end_datetime) WITH &&
        )
        WHERE (status IN ('draft', 'confirmed'));
    END IF;
END
$$;
"""


async def setup_database(drop: bool = False) -> None:
    async with engine.begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS pgcrypto"))
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS btree_gist"))
        if drop:
            logger.warning("Dropping all tables")
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
        await conn.execute(text(OVERLAP_CONSTRAINT_SQL))
    logger.info("Schema ready: %s", ", ".join(sorted(Base.metadata.tables)))


async def _run(drop: bool) -> int:
    try:
        await setup_database(drop=drop)
    except Exception as e:
        logger.error("Database setup failed: %s", str(e), exc_info=True)
        return 1
    finally:
        await dispose_engine()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Create the RentalHub schema (development only).")
    parser.add_argument("--drop", action="store_true", help="drop all tables before creating them")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    sys.exit(asyncio.run(_run(args.drop)))


if __name__ == "__main__":
    main()
