#!/usr/bin/env python3
"""
Build orchestrator for the pipe yard workflow engine
Creates the tables and seeds the yard's storage units
"""

from pipeyard import create_app, db
from pathlib import Path
import json
from pipeyard.logger import get_logger

logger = get_logger("pipeyard.build")

UNIT_SEED_FILE = Path(__file__).parent / 'data' / 'build_data_units.json'


def build_models():
    """Create every workflow table"""
    from pipeyard.data.storage_unit import StorageUnit  # noqa: F401
    from pipeyard.data.storage_request import StorageRequest, UnitAllocation  # noqa: F401
    from pipeyard.data.trucking_load import TruckingLoad  # noqa: F401
    from pipeyard.data.inventory_item import InventoryItem  # noqa: F401
    from pipeyard.data.audit_record import AuditRecord  # noqa: F401
    from pipeyard.data.notification_intent import NotificationIntent  # noqa: F401

    db.create_all()
    logger.info("All database tables created")


def load_unit_seed(seed_file=UNIT_SEED_FILE):
    """
    Read the storage unit seed list

    Returns:
        list: dicts with name, area and capacity
    """
    with open(seed_file, 'r') as f:
        data = json.load(f)
    return data.get('storage_units', [])


def seed_storage_units(units=None):
    """
    Insert missing storage units (existing names are left untouched)

    Returns:
        int: number of units created
    """
    from pipeyard.data.storage_unit import StorageUnit

    if units is None:
        units = load_unit_seed()

    created_count = 0
    for unit_data in units:
        data = dict(unit_data, occupied=0)
        _, created = StorageUnit.find_or_create_from_dict(
            data, operator='system', lookup_fields=['name'], commit=False,
        )
        if created:
            created_count += 1

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Storage unit seeding failed: {e}")
        raise

    logger.info(f"Seeded {created_count} storage unit(s), {len(units) - created_count} already present")
    return created_count


def build_database(seed_units=True, app=None):
    """
    Main build entry point

    Args:
        seed_units (bool): Whether to insert the seed storage units
        app: Existing Flask app (a new one is created when omitted)
    """
    app = app or create_app()

    with app.app_context():
        logger.info(f"Starting database build (seed_units={seed_units})")
        build_models()

        if seed_units:
            seed_storage_units()

        logger.info("Database build completed successfully")
