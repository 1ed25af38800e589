from contextlib import asynccontextmanager
from fastapi import FastAPI
from sqlmodel import Session
from order_sync.config import LOG_LEVEL
from order_sync.crud.ledger import ensure_reference_products
from order_sync.database import create_db_and_tables, engine
from order_sync.routes import imports, webhook
import logging

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    with Session(engine) as db:
        ensure_reference_products(db)
    logger.info("✅ Order sync service started")
    yield


app = FastAPI(title="Order Sync", lifespan=lifespan)
app.include_router(webhook.router)
app.include_router(imports.router)
