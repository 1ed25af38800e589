from sqlmodel import Field, SQLModel, Column, JSON
from typing import Dict, List, Optional
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict
from order_sync.config import SYNC_BATCH_SIZE
from order_sync.helpers.dates import utcnow
import secrets


class CursorPolicy(str, Enum):
    """How the batch cursor moves when some orders in a batch fail."""
    ADVANCE = "advance"  # skip past failed orders
    HALT_ON_ERROR = "halt_on_error"  # stop before the first failed order


def generate_webhook_token() -> str:
    return secrets.token_hex(16)


class SyncConfig(SQLModel, table=True):
    """Connection and import settings for the remote shop. One row is active."""

    __tablename__ = "sync_config"

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    shop_url: str
    api_key: str
    use_ws_key_param: bool = Field(default=False)
    warehouse_code: str = Field(default="ALG")
    series_code: str = Field(default="A")
    eligible_statuses: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    status_series: Dict[str, str] = Field(default_factory=dict, sa_column=Column(JSON))
    since_id: int = Field(default=0)
    since_date: Optional[datetime] = None
    active: bool = Field(default=True, index=True)
    batch_size: int = Field(default=SYNC_BATCH_SIZE)
    cursor_policy: CursorPolicy = Field(default=CursorPolicy.ADVANCE)
    language_id: int = Field(default=1)

    webhook_enabled: bool = Field(default=False)
    webhook_token: str = Field(default_factory=generate_webhook_token)

    # Direct read access to the shop database, used only for eco-tax overrides
    use_db_for_ecotax: bool = Field(default=False)
    db_host: Optional[str] = None
    db_port: int = Field(default=3306)
    db_name: Optional[str] = None
    db_user: Optional[str] = None
    db_password: Optional[str] = None
    db_prefix: str = Field(default="ps_")

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class SyncSettings(BaseModel):
    """Immutable snapshot of a SyncConfig row, taken once per invocation."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    config_id: int
    shop_url: str
    api_key: str
    use_ws_key_param: bool = False
    warehouse_code: str
    series_code: str
    eligible_statuses: tuple = ()
    status_series: Dict[str, str] = {}
    since_id: int = 0
    since_date: Optional[datetime] = None
    batch_size: int = SYNC_BATCH_SIZE
    cursor_policy: CursorPolicy = CursorPolicy.ADVANCE
    language_id: int = 1
    webhook_enabled: bool = False
    webhook_token: str = ""
    use_db_for_ecotax: bool = False
    db_host: Optional[str] = None
    db_port: int = 3306
    db_name: Optional[str] = None
    db_user: Optional[str] = None
    db_password: Optional[str] = None
    db_prefix: str = "ps_"

    @classmethod
    def from_config(cls, config: SyncConfig) -> "SyncSettings":
        return cls(
            config_id=config.id,
            shop_url=config.shop_url.rstrip("/"),
            api_key=config.api_key,
            use_ws_key_param=config.use_ws_key_param,
            warehouse_code=config.warehouse_code,
            series_code=config.series_code,
            eligible_statuses=tuple(int(s) for s in (config.eligible_statuses or [])),
            status_series=dict(config.status_series or {}),
            since_id=config.since_id or 0,
            since_date=config.since_date,
            batch_size=config.batch_size or SYNC_BATCH_SIZE,
            cursor_policy=config.cursor_policy or CursorPolicy.ADVANCE,
            language_id=config.language_id or 1,
            webhook_enabled=config.webhook_enabled,
            webhook_token=config.webhook_token or "",
            use_db_for_ecotax=config.use_db_for_ecotax,
            db_host=config.db_host,
            db_port=config.db_port or 3306,
            db_name=config.db_name,
            db_user=config.db_user,
            db_password=config.db_password,
            db_prefix=config.db_prefix or "ps_",
        )

    def series_for_status(self, status: int) -> str:
        """Series code for an order status, falling back to the default series."""
        return self.status_series.get(str(status)) or self.series_code
