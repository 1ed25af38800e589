from sqlmodel import Field, SQLModel
from typing import Optional
from datetime import datetime
from enum import Enum
from pydantic import ConfigDict
from order_sync.helpers.dates import utcnow


class ImportOrigin(str, Enum):
    CRON = "cron"
    MANUAL = "manual"
    WEBHOOK = "webhook"


class ImportResult(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


class ImportLogEntry(SQLModel, table=True):
    """Append-only log of every remote order import attempt."""

    __tablename__ = "import_log"

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    order_id: int = Field(index=True)
    order_reference: Optional[str] = None
    result: ImportResult = Field(index=True)
    origin: ImportOrigin = Field(default=ImportOrigin.CRON)
    document_id: Optional[int] = None  # Local sales document on success
    customer_code: Optional[str] = None
    customer_name: Optional[str] = None
    total: Optional[float] = None
    message: Optional[str] = None  # Error text or skip reason
