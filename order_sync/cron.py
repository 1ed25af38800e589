"""Scheduled entry point: `python -m order_sync.cron`."""

from sqlmodel import Session
from order_sync.config import LOG_LEVEL
from order_sync.crud.ledger import ensure_reference_products
from order_sync.crud.sync_config import load_settings
from order_sync.database import create_db_and_tables, engine
from order_sync.helpers.order_sync import BatchSummary, OrderSynchronizer
from order_sync.models.import_log import ImportOrigin
from typing import Optional
import logging

logger = logging.getLogger(__name__)


def run(db: Session, synchronizer_factory=OrderSynchronizer) -> Optional[BatchSummary]:
    """Run one scheduled batch. Errors propagate to the caller."""
    settings = load_settings(db)
    if settings is None:
        logger.warning("⚠️ No active sync configuration, skipping scheduled import")
        return None

    with synchronizer_factory(settings, db) as synchronizer:
        summary = synchronizer.run_batch(ImportOrigin.CRON)

    logger.info(f"✅ Scheduled import finished: {summary.to_dict()}")
    return summary


def main():
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    create_db_and_tables()
    try:
        with Session(engine) as db:
            ensure_reference_products(db)
            run(db)
    except Exception as e:
        logger.critical(f"❌ Scheduled import failed: {str(e)}")
        raise


if __name__ == "__main__":
    main()
