from sqlmodel import Session, select
from sqlalchemy import update
from order_sync.helpers.dates import utcnow
from order_sync.models.sync_config import SyncConfig, SyncSettings
from typing import Optional
import logging

logger = logging.getLogger(__name__)


def get_active_config(db: Session) -> Optional[SyncConfig]:
    """Return the active sync configuration, or None if there is none."""
    return db.exec(
        select(SyncConfig)
        .where(SyncConfig.active == True)  # noqa: E712
        .order_by(SyncConfig.id.desc())
    ).first()


def save_config(db: Session, config: SyncConfig, activate: bool = True) -> SyncConfig:
    """Insert or update a config row. Activating it deactivates every other row."""
    try:
        config.updated_at = utcnow()
        db.add(config)
        db.flush()

        if activate:
            config.active = True
            others = db.exec(
                select(SyncConfig).where(SyncConfig.id != config.id, SyncConfig.active == True)  # noqa: E712
            ).all()
            for other in others:
                other.active = False
                db.add(other)

        db.commit()
        db.refresh(config)
        logger.info(f"✅ Saved sync config {config.id} for {config.shop_url}")
        return config

    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to save sync config: {str(e)}")
        raise


def advance_cursor(db: Session, config_id: int, new_since_id: int) -> bool:
    """
    Move the cursor forward with a single-column update.

    Only `since_id` is written, and only when the new value is larger, so
    concurrent operator edits to other columns are never overwritten and
    the cursor never goes backwards.
    """
    try:
        result = db.connection().execute(
            update(SyncConfig)
            .where(SyncConfig.id == config_id, SyncConfig.since_id < new_since_id)
            .values(since_id=new_since_id)
        )
        db.commit()
        moved = result.rowcount > 0
        if moved:
            logger.info(f"🔄 Cursor for config {config_id} advanced to {new_since_id}")
        return moved

    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to advance cursor for config {config_id}: {str(e)}")
        raise


def reset_cursor(db: Session, config_id: int, since_id: int) -> None:
    """Operator rewind of the cursor. The only path that may lower it."""
    try:
        db.connection().execute(
            update(SyncConfig).where(SyncConfig.id == config_id).values(since_id=since_id)
        )
        db.commit()
        logger.info(f"⚠️ Cursor for config {config_id} reset to {since_id}")

    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to reset cursor for config {config_id}: {str(e)}")
        raise


def load_settings(db: Session) -> Optional[SyncSettings]:
    """Snapshot of the active config for one invocation, or None if unconfigured."""
    config = get_active_config(db)
    if config is None:
        return None
    return SyncSettings.from_config(config)
