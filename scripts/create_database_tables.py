"""
Create Database Tables Using SQLAlchemy

Creates the parcel schema directly with ``create_all()`` and registers the
county sources. Useful for local setup and tests; deployed databases are
migrated with Alembic (``alembic upgrade head``).
"""
import argparse
import sys
from pathlib import Path

# Add parent directory to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

import sqlalchemy as sa

from src.parcels.adapters.manatee import MANATEE_PAO_CONFIG
from src.parcels.adapters.sarasota import SARASOTA_PAO_CONFIG
from src.parcels.db.repository import ParcelRepository
from src.parcels.db.session import create_all_tables, engine, get_db_session
from src.parcels.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

SOURCE_CONFIGS = (MANATEE_PAO_CONFIG, SARASOTA_PAO_CONFIG)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create the parcel tables and register sources.")
    parser.add_argument("--skip-sources", action="store_true", help="Do not insert the source rows")
    return parser.parse_args()


def main() -> int:
    """Create all database tables."""
    setup_logging()
    args = parse_args()

    create_all_tables()

    tables = sorted(sa.inspect(engine).get_table_names())
    logger.info("database_tables_verified", count=len(tables), tables=tables)

    if not args.skip_sources:
        with get_db_session() as session:
            repo = ParcelRepository(session)
            for config in SOURCE_CONFIGS:
                source_id = repo.find_or_create_source(config)
                logger.info("source_registered", source_key=config.source_key, source_id=source_id)

    logger.info("database_setup_complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
