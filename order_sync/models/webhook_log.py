from sqlmodel import Field, SQLModel
from typing import Optional
from datetime import datetime
from pydantic import ConfigDict
from order_sync.helpers.dates import utcnow


class WebhookLogEntry(SQLModel, table=True):
    """Append-only log of inbound webhook calls."""

    __tablename__ = "webhook_log"

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    received_at: datetime = Field(default_factory=utcnow, index=True)
    ip: Optional[str] = None
    method: str = Field(default="POST")
    payload: Optional[str] = None  # Raw request body
    token_valid: bool = Field(default=False)
    order_id: Optional[int] = Field(default=None, index=True)
    processed: bool = Field(default=False)
    result: Optional[str] = None  # "success", "skipped" or "error"
    message: Optional[str] = None
