"""Eco-tax values read straight from the shop database."""

from order_sync.models.sync_config import SyncSettings
from sqlalchemy import create_engine, text, bindparam
from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError
from typing import Dict, Iterable, Optional
import logging

logger = logging.getLogger(__name__)


class EcotaxOverrideSource:
    """
    Per-product eco-tax from the shop's product table.

    Values are tax exclusive, as the shop stores them. Any database failure
    is logged and yields an empty result so the import carries on with
    what the webservice returned.
    """

    def __init__(self, settings: SyncSettings, engine=None):
        self.prefix = settings.db_prefix or "ps_"
        self.engine = engine
        if self.engine is None and self.is_configured(settings):
            self.engine = create_engine(URL.create(
                "mysql+pymysql",
                username=settings.db_user,
                password=settings.db_password,
                host=settings.db_host,
                port=settings.db_port,
                database=settings.db_name,
            ), pool_pre_ping=True)

    @staticmethod
    def is_configured(settings: SyncSettings) -> bool:
        return bool(settings.use_db_for_ecotax and settings.db_host and settings.db_name and settings.db_user)

    @classmethod
    def from_settings(cls, settings: SyncSettings) -> Optional["EcotaxOverrideSource"]:
        if not settings.use_db_for_ecotax:
            return None
        if not cls.is_configured(settings):
            logger.warning("⚠️ Eco-tax database override enabled but connection settings are incomplete")
            return None
        return cls(settings)

    def get_ecotax(self, product_ids: Iterable[int]) -> Dict[int, float]:
        ids = sorted({int(pid) for pid in product_ids if pid})
        if not ids or self.engine is None:
            return {}

        query = text(
            f"SELECT id_product, ecotax FROM {self.prefix}product WHERE id_product IN :ids"
        ).bindparams(bindparam("ids", expanding=True))

        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query, {"ids": ids}).all()
        except SQLAlchemyError as e:
            logger.error(f"❌ Could not read eco-tax from shop database: {str(e)}")
            return {}

        result = {int(row[0]): float(row[1] or 0) for row in rows}
        logger.info(f"🔍 Read eco-tax for {len(result)} products from shop database")
        return result
