from fastapi import APIRouter, Request, Depends
from fastapi.concurrency import run_in_threadpool
from fastapi.templating import Jinja2Templates
from fastapi.responses import JSONResponse
from sqlmodel import Session
from order_sync.database import get_db
from order_sync.crud.sync_config import get_active_config, load_settings
from order_sync.crud.webhook_log import log_webhook, mark_processed
from order_sync.exceptions import SyncError
from order_sync.helpers.order_sync import ImportOutcome, OrderSynchronizer
from order_sync.models.import_log import ImportOrigin
from pathlib import Path
from typing import Any, Optional
import hmac
import json
import logging

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))

# Set up a module-level logger
logger = logging.getLogger(__name__)

ORDER_ID_KEYS = ("id_order", "order_id", "orderId", "id")


def get_synchronizer_factory():
    """Dependency returning the callable that builds a synchronizer for (settings, db)."""
    return OrderSynchronizer


def extract_order_id(payload: Any) -> Optional[int]:
    """Order id from a webhook payload, trying the accepted key names in order."""
    if isinstance(payload, bool):
        return None
    if isinstance(payload, (int, float)):
        return int(payload) if payload > 0 else None
    if isinstance(payload, str):
        return int(payload) if payload.strip().isdigit() and int(payload) > 0 else None
    if isinstance(payload, dict):
        for key in ORDER_ID_KEYS:
            order_id = extract_order_id(payload.get(key))
            if order_id:
                return order_id
    return None


async def _read_payload(request: Request, body: bytes) -> Any:
    """JSON body, then form fields, then a bare numeric body."""
    try:
        return json.loads(body)
    except ValueError:
        pass

    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        form = await request.form()
        return dict(form)

    return body.decode("utf-8", errors="replace").strip()


@router.get("/orders")
def webhook_status_page(request: Request, db: Session = Depends(get_db)):
    """Human-readable status of the order webhook."""
    config = get_active_config(db)
    return templates.TemplateResponse(request, "webhook_status.html", {
        "configured": config is not None,
        "enabled": bool(config and config.webhook_enabled),
        "token_set": bool(config and config.webhook_token),
        "endpoint": str(request.url_for("receive_order_webhook")),
    })


@router.post("/orders")
async def receive_order_webhook(
    request: Request,
    token: Optional[str] = None,
    db: Session = Depends(get_db),
    synchronizer_factory=Depends(get_synchronizer_factory)
):
    """Import the order referenced by a shop webhook call."""
    ip = request.client.host if request.client else None
    body = await request.body()
    payload = await _read_payload(request, body)

    # Database and shop calls block, keep them off the event loop
    return await run_in_threadpool(
        handle_order_webhook, db, synchronizer_factory, ip, token,
        body.decode("utf-8", errors="replace"), payload
    )


def handle_order_webhook(db: Session, synchronizer_factory, ip: Optional[str], token: Optional[str],
                         raw_payload: str, payload: Any) -> JSONResponse:
    """Validate a webhook call, import its order and log the outcome."""
    settings = load_settings(db)
    if settings is None:
        logger.error("❌ Webhook received but sync is not configured")
        return JSONResponse(status_code=500, content={"success": False, "error": "Sync is not configured"})

    if not settings.webhook_enabled:
        entry = log_webhook(db, ip, raw_payload, token_valid=False)
        mark_processed(db, entry, False, "Webhooks disabled")
        logger.warning(f"⚠️ Webhook from {ip} rejected: webhooks disabled")
        return JSONResponse(status_code=403, content={"success": False, "error": "Webhooks disabled"})

    token_valid = bool(token and settings.webhook_token and hmac.compare_digest(token, settings.webhook_token))
    if not token_valid:
        entry = log_webhook(db, ip, raw_payload, token_valid=False)
        mark_processed(db, entry, False, "Invalid token")
        logger.warning(f"⚠️ Webhook from {ip} rejected: invalid token")
        return JSONResponse(status_code=403, content={"success": False, "error": "Invalid token"})

    order_id = extract_order_id(payload)
    entry = log_webhook(db, ip, raw_payload, token_valid=True, order_id=order_id)

    if not order_id:
        mark_processed(db, entry, False, "No order id in payload")
        return JSONResponse(status_code=400, content={"success": False, "error": "No order id in payload"})

    logger.info(f"🔄 Webhook import of order {order_id} from {ip}")
    try:
        with synchronizer_factory(settings, db) as synchronizer:
            result = synchronizer.import_order(order_id, ImportOrigin.WEBHOOK)
    except SyncError as e:
        mark_processed(db, entry, False, e.message)
        logger.error(f"❌ Webhook import of order {order_id} failed: {e.message}")
        return JSONResponse(status_code=500, content={"success": False, "error": e.message, "order_id": order_id})
    except Exception as e:
        mark_processed(db, entry, False, str(e))
        logger.error(f"❌ Webhook import of order {order_id} failed unexpectedly: {str(e)}")
        return JSONResponse(status_code=500, content={"success": False, "error": str(e), "order_id": order_id})

    if result.outcome == ImportOutcome.SKIPPED_STATUS:
        mark_processed(db, entry, False, result.message, result="skipped")
        return JSONResponse(content={
            "success": False,
            "message": result.message,
            "order_id": order_id,
            "current_state": result.order.current_state,
            "eligible_statuses": list(settings.eligible_statuses),
        })

    if result.outcome == ImportOutcome.SKIPPED_DATE:
        mark_processed(db, entry, False, result.message, result="skipped")
        return JSONResponse(content={
            "success": False,
            "message": result.message,
            "order_id": order_id,
            "last_status_date": result.status_date.isoformat() if result.status_date else None,
            "since_date": settings.since_date.isoformat() if settings.since_date else None,
        })

    if result.outcome in (ImportOutcome.ERROR, ImportOutcome.NOT_FOUND):
        mark_processed(db, entry, False, result.message)
        return JSONResponse(status_code=500, content={
            "success": False,
            "error": result.message,
            "order_id": order_id,
        })

    mark_processed(db, entry, True, result.message)
    return JSONResponse(content=result.to_dict())
