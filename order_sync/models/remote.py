"""Transient views of remote webservice resources. Never persisted."""

from sqlmodel import SQLModel, Field
from typing import List, Optional
from datetime import datetime


class RemoteOrderLine(SQLModel):
    product_id: int = 0
    product_reference: str = ""
    product_name: str = ""
    quantity: float = 0
    unit_price_tax_incl: float = 0.0
    unit_price_tax_excl: float = 0.0
    ecotax: float = 0.0  # Tax inclusive, per unit
    ecotax_tax_rate: float = 0.0


class RemoteOrder(SQLModel):
    id: int
    reference: str = ""
    customer_id: int = 0
    invoice_address_id: int = 0
    delivery_address_id: int = 0
    current_state: int = 0
    payment: str = ""
    module: str = ""
    total_paid: float = 0.0
    total_shipping: float = 0.0
    total_wrapping: float = 0.0
    total_discounts: float = 0.0
    date_add: Optional[datetime] = None
    status_history: List[datetime] = Field(default_factory=list)
    lines: List[RemoteOrderLine] = Field(default_factory=list)
    cart_rules: List[str] = Field(default_factory=list)


class RemoteCustomer(SQLModel):
    id: int
    firstname: str = ""
    lastname: str = ""
    email: str = ""
    company: str = ""


class RemoteAddress(SQLModel):
    id: int
    customer_id: int = 0
    firstname: str = ""
    lastname: str = ""
    company: str = ""
    vat_number: str = ""
    dni: str = ""
    address1: str = ""
    address2: str = ""
    postcode: str = ""
    city: str = ""
    other: str = ""
    phone: str = ""
    phone_mobile: str = ""
    country_id: int = 0
    state_id: int = 0


class RemoteCountry(SQLModel):
    id: int
    iso_code: str = ""
    name: str = ""


class RemoteStatusChange(SQLModel):
    id: int
    order_id: int = 0
    state_id: int = 0
    date_add: Optional[datetime] = None
