from sqlmodel import Field, SQLModel
from typing import Optional
from datetime import datetime
from pydantic import ConfigDict
from order_sync.helpers.dates import utcnow


class TaxMap(SQLModel, table=True):
    """Maps a legal tax rate (percent) to a local tax code."""

    __tablename__ = "tax_map"

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    rate: float = Field(index=True, unique=True)
    remote_name: Optional[str] = None
    tax_code: str
    created_at: datetime = Field(default_factory=utcnow)


class PaymentMap(SQLModel, table=True):
    """Maps a remote payment-method name to a local payment code."""

    __tablename__ = "payment_map"

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    payment_name: str = Field(index=True, unique=True)
    payment_code: str
    created_at: datetime = Field(default_factory=utcnow)
