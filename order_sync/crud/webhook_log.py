from sqlmodel import Session, select, func
from order_sync.helpers.dates import utcnow
from order_sync.models.webhook_log import WebhookLogEntry
from datetime import datetime, timedelta
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)


def log_webhook(
    db: Session,
    ip: Optional[str],
    payload: Optional[str],
    token_valid: bool,
    order_id: Optional[int] = None,
    method: str = "POST"
) -> WebhookLogEntry:
    """Record an inbound webhook call before it is processed."""
    try:
        entry = WebhookLogEntry(
            ip=ip,
            method=method,
            payload=payload,
            token_valid=token_valid,
            order_id=order_id
        )
        db.add(entry)
        db.commit()
        db.refresh(entry)
        return entry

    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to write webhook log from {ip}: {str(e)}")
        raise


def mark_processed(
    db: Session,
    entry: WebhookLogEntry,
    success: bool,
    message: Optional[str] = None,
    result: Optional[str] = None
) -> WebhookLogEntry:
    """Close a webhook log entry with its outcome."""
    try:
        entry.processed = True
        entry.result = result or ("success" if success else "error")
        entry.message = message
        db.add(entry)
        db.commit()
        db.refresh(entry)
        return entry

    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to update webhook log {entry.id}: {str(e)}")
        raise


def get_webhook_stats(db: Session, days: int = 7, now: Optional[datetime] = None) -> Dict[str, int]:
    """Webhook call counts for the last `days` days."""
    since = (now or utcnow()) - timedelta(days=days)
    base = select(func.count(WebhookLogEntry.id)).where(WebhookLogEntry.received_at >= since)

    total = db.exec(base).one()
    valid = db.exec(base.where(WebhookLogEntry.token_valid == True)).one()  # noqa: E712
    processed = db.exec(base.where(WebhookLogEntry.processed == True)).one()  # noqa: E712

    return {
        'total': total or 0,
        'valid': valid or 0,
        'invalid': (total or 0) - (valid or 0),
        'processed': processed or 0
    }
