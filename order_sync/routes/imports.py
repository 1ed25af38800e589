from fastapi import APIRouter, Depends, Body, Query
from fastapi.responses import JSONResponse
from sqlmodel import Session
from order_sync.database import get_db
from order_sync.crud.import_log import get_import_stats, get_recent_imports
from order_sync.crud.sync_config import load_settings
from order_sync.crud.webhook_log import get_webhook_stats
from order_sync.exceptions import SyncError
from order_sync.helpers.commands import ImportCommand
from order_sync.helpers.order_sync import detect_payment_methods
from order_sync.helpers.prestashop import PrestashopConnector
from order_sync.routes.webhook import get_synchronizer_factory
from typing import Optional
import logging

router = APIRouter(prefix="/imports", tags=["imports"])

# Set up a module-level logger
logger = logging.getLogger(__name__)

NOT_CONFIGURED = {"success": False, "detail": "Sync is not configured."}


def get_connector_factory():
    return PrestashopConnector


@router.post("/actions")
def run_import_action(
    command: ImportCommand = Body(...),
    db: Session = Depends(get_db),
    synchronizer_factory=Depends(get_synchronizer_factory)
):
    """Run an operator import action (batch, single order or selected orders)."""
    settings = load_settings(db)
    if settings is None:
        return JSONResponse(status_code=400, content=NOT_CONFIGURED)

    logger.info(f"🔄 Operator action {command.action}")
    try:
        with synchronizer_factory(settings, db) as synchronizer:
            return JSONResponse(content=command.execute(synchronizer))
    except SyncError as e:
        logger.error(f"❌ Operator action {command.action} failed: {e.message}")
        return JSONResponse(status_code=500, content={"success": False, **e.to_dict()})


@router.get("/logs")
def list_import_logs(
    limit: int = Query(100, ge=1, le=1000),
    order_id: Optional[int] = None,
    db: Session = Depends(get_db)
):
    entries = get_recent_imports(db, limit=limit, order_id=order_id)
    return [entry.model_dump(mode="json") for entry in entries]


@router.get("/stats")
def import_statistics(period: str = "today", db: Session = Depends(get_db)):
    """Import outcome counts for the period plus webhook call counts for the last week."""
    try:
        imports = get_import_stats(db, period)
    except ValueError as e:
        return JSONResponse(status_code=400, content={"detail": str(e)})

    return {"period": period, "imports": imports, "webhooks": get_webhook_stats(db, days=7)}


@router.post("/test-connection")
def test_connection(db: Session = Depends(get_db), connector_factory=Depends(get_connector_factory)):
    settings = load_settings(db)
    if settings is None:
        return JSONResponse(status_code=400, content=NOT_CONFIGURED)

    try:
        with connector_factory(settings) as connector:
            connector.test_connection()
            states = connector.get_order_states()
    except SyncError as e:
        return JSONResponse(status_code=502, content={"success": False, **e.to_dict()})

    return {
        "success": True,
        "order_states": [{"id": state_id, "name": f"[{state_id}] {name}"} for state_id, name in states],
    }


@router.get("/payment-methods")
def list_detected_payment_methods(
    sample_size: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    connector_factory=Depends(get_connector_factory)
):
    """Payment methods seen on recent orders and whether each one is mapped."""
    settings = load_settings(db)
    if settings is None:
        return JSONResponse(status_code=400, content=NOT_CONFIGURED)

    try:
        with connector_factory(settings) as connector:
            methods = detect_payment_methods(connector, db, sample_size)
    except SyncError as e:
        return JSONResponse(status_code=502, content={"success": False, **e.to_dict()})

    return {"success": True, "payment_methods": methods}
