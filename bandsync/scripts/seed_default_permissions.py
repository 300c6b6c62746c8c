"""
Seed Default Permissions Script
Creates the default permissions document for every group that has none, and
optionally resets existing ones to the defaults from permissions_config.
Can be run manually or as part of a nightly job.

    python -m bandsync.scripts.seed_default_permissions [--reset]
"""

import argparse
import sys
from bandsync.database.document_store import DocumentStore, GROUPS, PERMISSIONS
from bandsync.database.supabase_client import get_document_store
from bandsync.modules.permissions.service import PermissionService
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def seed_permissions(store: DocumentStore, reset: bool = False) -> dict:
    """Backfill permissions documents for all groups"""
    logger.info("Seeding group permissions...")
    service = PermissionService(store)

    created_count = 0
    reset_count = 0
    skipped_count = 0

    for group in store.query(GROUPS):
        try:
            existing = store.get(PERMISSIONS, group.id)
            if existing is not None and not reset:
                skipped_count += 1
                continue

            if existing is None:
                service.create_default_permissions(group.id)
                created_count += 1
                logger.debug(f"Created permissions for group: {group.id}")
            else:
                # Also re-enables every module in the group settings
                service.reset_to_defaults(group.id)
                reset_count += 1
                logger.debug(f"Reset permissions for group: {group.id}")
        except Exception as e:
            logger.error(f"Error processing group {group.id}: {e}")

    logger.info(f"Permissions seeded: {created_count} created, {reset_count} reset, {skipped_count} unchanged")
    return {"created": created_count, "reset": reset_count, "skipped": skipped_count}


def main():
    """Main function to seed group permissions"""
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--reset", action="store_true", help="overwrite existing permissions with the defaults")
    args = parser.parse_args()

    try:
        store = get_document_store()
        seed_permissions(store, reset=args.reset)
        logger.info("Seeding completed successfully!")
    except Exception as e:
        logger.error(f"Error during seeding: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
