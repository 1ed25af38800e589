from sqlmodel import Field, SQLModel
from typing import Optional
from datetime import datetime, date, time
from pydantic import ConfigDict
from order_sync.helpers.dates import utcnow


class Customer(SQLModel, table=True):
    """Local customer, deduplicated by normalized tax identifier."""

    __tablename__ = "customer"

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    code: Optional[str] = Field(default=None, index=True)
    name: str
    legal_name: Optional[str] = None
    is_individual: bool = Field(default=True)
    tax_id: Optional[str] = None
    tax_id_type: Optional[str] = None  # CIF, NIF, DNI or NIE
    tax_id_key: Optional[str] = Field(default=None, index=True)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    postcode: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    country_code: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Product(SQLModel, table=True):
    __tablename__ = "product"

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    reference: str = Field(index=True, unique=True)
    description: str
    tax_code: Optional[str] = None
    tax_rate: float = Field(default=21.0)
    sellable: bool = Field(default=True)
    track_stock: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow)


class SalesDocument(SQLModel, table=True):
    """Delivery note created from one remote order."""

    __tablename__ = "sales_document"

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    # Remote order reference; the only idempotency key
    cross_reference: str = Field(unique=True, index=True)
    customer_id: int = Field(foreign_key="customer.id", index=True)
    customer_code: Optional[str] = None
    customer_name: Optional[str] = None
    tax_id: Optional[str] = None
    warehouse_code: str
    series_code: str
    payment_code: Optional[str] = None
    document_date: date
    document_time: time
    address: Optional[str] = None
    postcode: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    po_box: Optional[str] = None
    phone1: Optional[str] = None
    phone2: Optional[str] = None
    country_code: Optional[str] = None
    notes: Optional[str] = None
    net: float = Field(default=0.0)
    total_tax: float = Field(default=0.0)
    total_surcharge: float = Field(default=0.0)
    total: float = Field(default=0.0)
    invoice_id: Optional[int] = None  # Set by the ledger when the note is invoiced
    created_at: datetime = Field(default_factory=utcnow)


class SalesDocumentLine(SQLModel, table=True):
    __tablename__ = "sales_document_line"

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    document_id: int = Field(foreign_key="sales_document.id", index=True)
    position: int = Field(default=0)
    reference: Optional[str] = None
    description: str
    quantity: float
    unit_price: float  # Tax exclusive
    tax_code: Optional[str] = None
    tax_rate: float = Field(default=0.0)
    surcharge_rate: float = Field(default=0.0)
    line_total: float = Field(default=0.0)  # quantity * unit_price, rounded to the cent


class SalesDocumentCreate(SQLModel):
    """Header fields for a new sales document."""
    cross_reference: str
    warehouse_code: str
    series_code: str
    payment_code: Optional[str] = None
    document_date: date
    document_time: time
    address: Optional[str] = None
    postcode: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    po_box: Optional[str] = None
    phone1: Optional[str] = None
    phone2: Optional[str] = None
    country_code: Optional[str] = None
    notes: Optional[str] = None


class SalesDocumentLineCreate(SQLModel):
    reference: Optional[str] = None
    description: str
    quantity: float
    unit_price: float
    tax_code: Optional[str] = None
    tax_rate: float = 0.0
    surcharge_rate: float = 0.0
