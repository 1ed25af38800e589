"""
Cursor-driven import of remote orders.

Both triggers end up here: the scheduled batch calls run_batch(), and the
webhook and the operator screens call import_order() for a single order.
"""

from order_sync.crud import import_log
from order_sync.crud.mappings import get_payment_mappings
from order_sync.crud.sync_config import advance_cursor
from order_sync.exceptions import ConnectivityError, SyncError
from order_sync.helpers.ecotax_source import EcotaxOverrideSource
from order_sync.helpers.order_transformer import (
    OrderTransformer, TransformStatus, latest_status_date, order_reference
)
from order_sync.helpers.prestashop import PrestashopConnector
from order_sync.models.import_log import ImportOrigin
from order_sync.models.ledger import Customer, SalesDocument
from order_sync.models.remote import RemoteOrder
from order_sync.models.sync_config import CursorPolicy, SyncSettings
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from sqlmodel import Session
from typing import Dict, List, Optional
import logging

# Set up a module-level logger
logger = logging.getLogger(__name__)

SUSPICIOUS_SINCE_ID = 1000


class ImportOutcome(str, Enum):
    IMPORTED = "imported"
    ALREADY_EXISTS = "already_exists"
    SKIPPED_STATUS = "skipped_status"
    SKIPPED_DATE = "skipped_date"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass
class OrderImportResult:
    """Outcome of one order through import_order()."""
    outcome: ImportOutcome
    order_id: int
    reference: Optional[str] = None
    order: Optional[RemoteOrder] = None
    document: Optional[SalesDocument] = None
    customer: Optional[Customer] = None
    status_date: Optional[datetime] = None
    message: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.outcome in (ImportOutcome.IMPORTED, ImportOutcome.ALREADY_EXISTS)

    def to_dict(self) -> Dict:
        data = {
            "success": self.success,
            "outcome": self.outcome.value,
            "order_id": self.order_id,
            "order_reference": self.reference,
            "message": self.message,
        }
        if self.document is not None:
            data.update({
                "document_id": self.document.id,
                "customer_code": self.document.customer_code,
                "total": self.document.total,
                "invoice_id": self.document.invoice_id,
            })
        if self.warnings:
            data["warnings"] = self.warnings
        return data


@dataclass
class BatchSummary:
    imported: int = 0
    skipped: int = 0
    errors: int = 0
    considered: int = 0
    cursor_before: int = 0
    cursor_after: int = 0
    aborted: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "imported": self.imported,
            "skipped": self.skipped,
            "errors": self.errors,
            "considered": self.considered,
            "cursor_before": self.cursor_before,
            "cursor_after": self.cursor_after,
            "aborted": self.aborted,
        }


def next_cursor(policy: CursorPolicy, current: int, outcomes: List[tuple]) -> int:
    """
    Cursor value after a batch.

    `outcomes` holds (order_id, result) pairs in processing order, result
    being "imported", "skipped" or "error". The cursor never decreases.
    """
    if not outcomes:
        return current

    if policy == CursorPolicy.HALT_ON_ERROR:
        candidate = current
        for order_id, result in outcomes:
            if result == "error":
                break
            candidate = order_id
    else:
        imported = [order_id for order_id, result in outcomes if result == "imported"]
        candidate = imported[-1] if imported else outcomes[-1][0]

    return max(current, candidate)


class OrderSynchronizer:
    """
    Imports remote orders into the local ledger.

    Settings are an immutable snapshot taken by the caller at the start of
    the invocation; nothing here reads configuration on its own.
    """

    def __init__(
        self,
        settings: SyncSettings,
        db: Session,
        connector: Optional[PrestashopConnector] = None,
        transformer: Optional[OrderTransformer] = None
    ):
        self.settings = settings
        self.db = db
        self.connector = connector or PrestashopConnector(settings)
        self.transformer = transformer or OrderTransformer(
            settings,
            self.connector,
            db,
            ecotax_source=EcotaxOverrideSource.from_settings(settings)
        )

    def close(self):
        self.connector.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _status_date(self, order: RemoteOrder) -> Optional[datetime]:
        return latest_status_date(order, self.connector)

    def _too_old(self, status_date: Optional[datetime]) -> bool:
        since_date = self.settings.since_date
        return bool(since_date and status_date and status_date < since_date)

    def _transform_and_log(self, order: RemoteOrder, origin: ImportOrigin,
                           status_date: Optional[datetime]) -> OrderImportResult:
        """Run the transformer for one order and write the audit entry."""
        reference = order_reference(order)
        try:
            result = self.transformer.transform(order)
        except ConnectivityError as e:
            import_log.log_error(self.db, order.id, reference, e.message, origin)
            raise
        except SyncError as e:
            logger.error(f"❌ Order {order.id} ({reference}) failed: {e.message}")
            import_log.log_error(self.db, order.id, reference, e.message, origin)
            return OrderImportResult(ImportOutcome.ERROR, order.id, reference, order,
                                     status_date=status_date, message=e.message)
        except Exception as e:
            logger.error(f"❌ Order {order.id} ({reference}) failed unexpectedly: {str(e)}")
            import_log.log_error(self.db, order.id, reference, str(e), origin)
            return OrderImportResult(ImportOutcome.ERROR, order.id, reference, order,
                                     status_date=status_date, message=str(e))

        warnings = [str(w) for w in result.warnings]
        if result.status == TransformStatus.ALREADY_EXISTS:
            import_log.log_skipped(self.db, order.id, reference, "Already imported", origin)
            return OrderImportResult(ImportOutcome.ALREADY_EXISTS, order.id, reference, order,
                                     status_date=status_date, message="Order already imported",
                                     warnings=warnings)

        document = result.document
        import_log.log_success(
            self.db,
            order_id=order.id,
            order_reference=reference,
            document_id=document.id,
            customer_code=document.customer_code,
            customer_name=document.customer_name,
            total=document.total,
            origin=origin,
            message="; ".join(warnings) or None
        )
        return OrderImportResult(ImportOutcome.IMPORTED, order.id, reference, order, document,
                                 result.customer, status_date, "Order imported", warnings)

    def import_order(self, order_id: int, origin: ImportOrigin = ImportOrigin.MANUAL,
                     apply_filters: bool = True) -> OrderImportResult:
        """
        Fetch and import a single order.

        With apply_filters the order must be in an eligible status and its
        latest status change must not predate the configured cutoff date;
        otherwise it is skipped with an explanatory message. A
        ConnectivityError while fetching the order propagates.
        """
        order = self.connector.get_order(order_id)
        if order is None:
            message = f"Order {order_id} not found in shop"
            logger.warning(f"⚠️ {message}")
            import_log.log_error(self.db, order_id, None, message, origin)
            return OrderImportResult(ImportOutcome.NOT_FOUND, order_id, message=message)

        reference = order_reference(order)
        eligible = self.settings.eligible_statuses

        if apply_filters and eligible and order.current_state not in eligible:
            message = f"Order status {order.current_state} is not eligible for import"
            logger.info(f"🔍 Skipping order {order_id}: {message}")
            import_log.log_skipped(self.db, order_id, reference, message, origin)
            return OrderImportResult(ImportOutcome.SKIPPED_STATUS, order_id, reference, order, message=message)

        status_date = self._status_date(order)
        if apply_filters and self._too_old(status_date):
            message = (
                f"Latest status change {status_date:%Y-%m-%d %H:%M:%S} is before "
                f"{self.settings.since_date:%Y-%m-%d %H:%M:%S}"
            )
            logger.info(f"🔍 Skipping order {order_id}: {message}")
            import_log.log_skipped(self.db, order_id, reference, message, origin)
            return OrderImportResult(ImportOutcome.SKIPPED_DATE, order_id, reference, order,
                                     status_date=status_date, message=message)

        return self._transform_and_log(order, origin, status_date)

    def import_selected(self, order_ids: List[int],
                        origin: ImportOrigin = ImportOrigin.MANUAL) -> List[OrderImportResult]:
        """Import operator-selected orders one by one, ignoring the status and date filters."""
        results = []
        for order_id in order_ids:
            results.append(self.import_order(order_id, origin, apply_filters=False))
        return results

    def run_batch(self, origin: ImportOrigin = ImportOrigin.CRON,
                  since_id: Optional[int] = None) -> BatchSummary:
        """
        Import the next batch of orders after the cursor.

        The stored cursor is the last order already handled, so the fetch
        starts just after it. Passing since_id reads from that id inclusive
        instead and leaves the stored cursor alone. One order's failure never
        stops the batch; a ConnectivityError does, before the cursor moves.
        """
        settings = self.settings
        use_stored_cursor = since_id is None
        start_id = settings.since_id if use_stored_cursor else since_id
        summary = BatchSummary(cursor_before=start_id, cursor_after=start_id)

        if not settings.eligible_statuses:
            logger.warning("⚠️ No eligible order statuses configured, nothing to import")
            summary.aborted = "No eligible order statuses configured"
            return summary

        if settings.since_date and start_id > SUSPICIOUS_SINCE_ID:
            logger.warning(
                f"⚠️ Both a cutoff date ({settings.since_date:%Y-%m-%d}) and a high cursor ({start_id}) "
                f"are set; orders below id {start_id} are never considered"
            )

        # Fails fast with ConnectivityError before any order is touched
        self.connector.get_orders(1, statuses=settings.eligible_statuses)

        fetch_from = (start_id + 1 if start_id else None) if use_stored_cursor else (start_id or None)
        orders = self.connector.get_orders(settings.batch_size, fetch_from, settings.eligible_statuses)
        logger.info(f"🔄 Processing {len(orders)} orders from id {start_id} ({origin.value})")

        outcomes = []
        for order in orders:
            summary.considered += 1
            status_date = self._status_date(order)

            if self._too_old(status_date):
                import_log.log_skipped(
                    self.db, order.id, order_reference(order),
                    f"Latest status change {status_date:%Y-%m-%d %H:%M:%S} is before cutoff date", origin
                )
                summary.skipped += 1
                outcomes.append((order.id, "skipped"))
                continue

            result = self._transform_and_log(order, origin, status_date)
            if result.outcome == ImportOutcome.IMPORTED:
                summary.imported += 1
                outcomes.append((order.id, "imported"))
            elif result.outcome == ImportOutcome.ALREADY_EXISTS:
                summary.skipped += 1
                outcomes.append((order.id, "skipped"))
            else:
                summary.errors += 1
                outcomes.append((order.id, "error"))

        new_cursor = next_cursor(settings.cursor_policy, start_id, outcomes)
        if use_stored_cursor and new_cursor > start_id:
            advance_cursor(self.db, settings.config_id, new_cursor)
        summary.cursor_after = new_cursor

        logger.info(
            f"✅ Batch done: {summary.imported} imported, {summary.skipped} skipped, "
            f"{summary.errors} errors, cursor {summary.cursor_before} -> {summary.cursor_after}"
        )
        return summary


def detect_payment_methods(connector: PrestashopConnector, db: Session, sample_size: int = 100) -> List[Dict]:
    """Distinct payment names on recent orders, flagged with whether they are mapped."""
    mapped = {m.payment_name: m.payment_code for m in get_payment_mappings(db)}
    names = sorted({order.payment for order in connector.get_orders(sample_size, newest_first=True) if order.payment})
    return [
        {"payment_name": name, "mapped": name in mapped, "payment_code": mapped.get(name)}
        for name in names
    ]
