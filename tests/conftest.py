"""Shared fixtures: in-memory database, an active sync config and a fake shop."""
import pytest
from datetime import datetime
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine
from order_sync.crud.ledger import ensure_reference_products
from order_sync.crud.mappings import save_payment_mapping, save_tax_mapping
from order_sync.crud.sync_config import save_config
from order_sync.models.remote import (
    RemoteAddress, RemoteCountry, RemoteCustomer, RemoteOrder, RemoteOrderLine, RemoteStatusChange
)
from order_sync.models.sync_config import SyncConfig, SyncSettings


class FakeShop:
    """In-memory stand-in for PrestashopConnector."""

    def __init__(self):
        self.orders = {}
        self.details = {}
        self.histories = {}
        self.customers = {}
        self.addresses = {}
        self.countries = {6: RemoteCountry(id=6, iso_code="ES", name="Spain"),
                          8: RemoteCountry(id=8, iso_code="FR", name="France")}
        self.states = {}
        self.order_states = [(2, "Payment accepted"), (3, "Processing"), (6, "Canceled")]
        self.error = None
        self.closed = False

    def add_order(self, order, details=None, history=None):
        self.orders[order.id] = order
        if details is not None:
            self.details[order.id] = details
        if history is not None:
            self.histories[order.id] = history
        return order

    def _check(self):
        if self.error:
            raise self.error

    def get_orders(self, limit, since_id=None, statuses=None, newest_first=False):
        self._check()
        orders = sorted(self.orders.values(), key=lambda o: o.id, reverse=newest_first)
        if since_id:
            orders = [o for o in orders if o.id >= since_id]
        if statuses:
            orders = [o for o in orders if o.current_state in statuses]
        return orders[:limit]

    def get_order(self, order_id):
        self._check()
        return self.orders.get(order_id)

    def get_order_line_details(self, order_id):
        self._check()
        return self.details.get(order_id, [])

    def get_order_history(self, order_id):
        self._check()
        return self.histories.get(order_id, [])

    def get_order_states(self):
        return list(self.order_states)

    def get_customer(self, customer_id):
        return self.customers.get(customer_id)

    def get_address(self, address_id):
        return self.addresses.get(address_id)

    def get_country(self, country_id):
        return self.countries.get(country_id)

    def get_state_name(self, state_id):
        return self.states.get(state_id)

    def test_connection(self):
        self._check()
        return True

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


@pytest.fixture
def engine():
    """Create a temporary in-memory database for testing."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def sync_config(db_session):
    """Active config importing statuses 2 and 3 with the webhook enabled."""
    return save_config(db_session, SyncConfig(
        shop_url="https://shop.example.com",
        api_key="TESTKEY",
        warehouse_code="ALG",
        series_code="A",
        eligible_statuses=[2, 3],
        webhook_enabled=True,
        webhook_token="secret-token"
    ))


@pytest.fixture
def settings(sync_config):
    return SyncSettings.from_config(sync_config)


@pytest.fixture
def provisioned(db_session):
    """Reference products plus tax and payment mappings."""
    ensure_reference_products(db_session)
    for rate, code in ((21.0, "IVA21"), (10.0, "IVA10"), (4.0, "IVA4"), (0.0, "IVA0")):
        save_tax_mapping(db_session, rate, code)
    save_payment_mapping(db_session, "Bank transfer", "TRANS")
    return db_session


@pytest.fixture
def shop():
    shop = FakeShop()
    shop.customers[10] = RemoteCustomer(id=10, firstname="Ana", lastname="García", email="ana@example.com")
    shop.addresses[20] = RemoteAddress(
        id=20, customer_id=10, firstname="Ana", lastname="García",
        dni="12345678Z", address1="Calle Mayor 1", address2="2º B",
        postcode="28013", city="Madrid", phone="910000000", phone_mobile="600000000",
        country_id=6, state_id=41
    )
    shop.states[41] = "Madrid"
    return shop


@pytest.fixture
def make_order():
    """Factory for remote orders in an eligible status with one 21% line."""
    def _make(order_id, reference=None, status=2, customer_id=10, address_id=20, lines=None, **kwargs):
        if lines is None:
            lines = [RemoteOrderLine(
                product_id=7, product_reference="TYRE-205", product_name="Tyre 205/55 R16",
                quantity=2, unit_price_tax_incl=12.10, unit_price_tax_excl=10.00
            )]
        kwargs.setdefault("payment", "Bank transfer")
        kwargs.setdefault("date_add", datetime(2024, 5, 1, 10, 0, 0))
        return RemoteOrder(
            id=order_id,
            reference=reference if reference is not None else f"PS-{order_id}",
            customer_id=customer_id,
            invoice_address_id=address_id,
            delivery_address_id=address_id,
            current_state=status,
            lines=lines,
            **kwargs
        )
    return _make


@pytest.fixture
def status_change():
    def _make(order_id, when, state_id=2, change_id=1):
        return RemoteStatusChange(id=change_id, order_id=order_id, state_id=state_id, date_add=when)
    return _make
