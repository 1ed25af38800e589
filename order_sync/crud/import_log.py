from sqlmodel import Session, select, func
from order_sync.helpers.dates import utcnow
from order_sync.models.import_log import ImportLogEntry, ImportOrigin, ImportResult
from datetime import datetime, timedelta
from typing import Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


def _create_entry(db: Session, entry: ImportLogEntry) -> ImportLogEntry:
    try:
        db.add(entry)
        db.commit()
        db.refresh(entry)
        return entry

    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to write import log for order {entry.order_id}: {str(e)}")
        raise


def log_success(
    db: Session,
    order_id: int,
    order_reference: str,
    document_id: int,
    customer_code: Optional[str],
    customer_name: Optional[str],
    total: float,
    origin: ImportOrigin = ImportOrigin.CRON,
    message: Optional[str] = None
) -> ImportLogEntry:
    """Record a successful import."""
    return _create_entry(db, ImportLogEntry(
        order_id=order_id,
        order_reference=order_reference,
        result=ImportResult.SUCCESS,
        origin=origin,
        document_id=document_id,
        customer_code=customer_code,
        customer_name=customer_name,
        total=total,
        message=message
    ))


def log_error(
    db: Session,
    order_id: int,
    order_reference: Optional[str],
    message: str,
    origin: ImportOrigin = ImportOrigin.CRON
) -> ImportLogEntry:
    """Record a failed import with the full error text."""
    return _create_entry(db, ImportLogEntry(
        order_id=order_id,
        order_reference=order_reference,
        result=ImportResult.ERROR,
        origin=origin,
        message=message
    ))


def log_skipped(
    db: Session,
    order_id: int,
    order_reference: Optional[str],
    reason: str,
    origin: ImportOrigin = ImportOrigin.CRON
) -> ImportLogEntry:
    """Record a deliberately skipped order."""
    return _create_entry(db, ImportLogEntry(
        order_id=order_id,
        order_reference=order_reference,
        result=ImportResult.SKIPPED,
        origin=origin,
        message=reason
    ))


def get_recent_imports(db: Session, limit: int = 100, order_id: Optional[int] = None) -> List[ImportLogEntry]:
    query = select(ImportLogEntry)
    if order_id is not None:
        query = query.where(ImportLogEntry.order_id == order_id)
    query = query.order_by(ImportLogEntry.created_at.desc(), ImportLogEntry.id.desc()).limit(limit)
    return db.exec(query).all()


PERIODS = {
    'today': None,
    'week': timedelta(days=7),
    'month': timedelta(days=30),
    'year': timedelta(days=365),
}


def get_import_stats(db: Session, period: str = 'today', now: Optional[datetime] = None) -> Dict[str, int]:
    """
    Count import outcomes for a period.

    Returns:
        dict: {'success': int, 'error': int, 'skipped': int, 'total': int}
    """
    if period not in PERIODS:
        raise ValueError(f"Unknown period '{period}'. Use one of {', '.join(PERIODS)}")

    now = now or utcnow()
    window = PERIODS[period]
    since = now.replace(hour=0, minute=0, second=0, microsecond=0) if window is None else now - window

    rows = db.exec(
        select(ImportLogEntry.result, func.count(ImportLogEntry.id))
        .where(ImportLogEntry.created_at >= since)
        .group_by(ImportLogEntry.result)
    ).all()

    stats = {result.value: 0 for result in ImportResult}
    for result, count in rows:
        key = result.value if isinstance(result, ImportResult) else str(result)
        stats[key] = count
    stats['total'] = sum(stats.values())
    return stats
