"""
Tests for the shared UTC clock.
"""
from datetime import datetime, timedelta, timezone
from order_sync.helpers.dates import utcnow
from order_sync.models.import_log import ImportLogEntry, ImportOrigin, ImportResult


def test_utcnow_is_naive_utc():
    now = utcnow()

    assert now.tzinfo is None
    assert abs(datetime.now(timezone.utc).replace(tzinfo=None) - now) < timedelta(seconds=5)


def test_new_rows_are_stamped_in_utc():
    before = utcnow()
    entry = ImportLogEntry(order_id=1, result=ImportResult.SUCCESS, origin=ImportOrigin.CRON)

    assert entry.created_at.tzinfo is None
    assert before <= entry.created_at <= utcnow()
