#!/usr/bin/env python3
"""
Initialize the relational store schema.

Creates the messages table (id primary key, message, created_at) that the
DB sink inserts into, then verifies it answers the existence query.

Usage:
    python scripts/init_schema.py
"""

import sys
from pathlib import Path

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.utils.config import get_settings
from app.utils.db_client import DatabaseClient


def verify_schema(client: DatabaseClient, table: str) -> int:
    """Run the existence query the oracle uses; returns current row count."""
    count = client.execute_scalar(f"SELECT COUNT(*) FROM {table}")
    logger.info(f"  {table}: {count} row(s)")
    return count


def main():
    """Main initialization function."""
    logger.info("Starting schema initialization...")

    # Load settings
    settings = get_settings()
    client = DatabaseClient(settings.database_url)

    try:
        client.connect()
        client.ensure_messages_table(settings.messages_table)

        logger.info("\n=== Tables ===")
        verify_schema(client, settings.messages_table)

        logger.success("\n✓ Schema initialization completed successfully!")
        return 0

    except SQLAlchemyError as e:
        logger.error(f"Schema initialization failed: {e}")
        return 1

    finally:
        client.close()
        logger.info("Disconnected from database")


if __name__ == "__main__":
    sys.exit(main())
