"""Read-only client for the PrestaShop webservice."""

from order_sync.config import REMOTE_TIMEOUT_SECONDS
from order_sync.exceptions import ConnectivityError
from order_sync.models.remote import (
    RemoteAddress, RemoteCountry, RemoteCustomer, RemoteOrder,
    RemoteOrderLine, RemoteStatusChange
)
from order_sync.models.sync_config import SyncSettings
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple
import httpx
import logging

# Set up a module-level logger
logger = logging.getLogger(__name__)

MAX_REMOTE_ID = 999999999
EMPTY_DATE = "0000-00-00 00:00:00"


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _text(value: Any, language_id: int = 1) -> str:
    """Plain string from a scalar or a multi-language field."""
    if value is None:
        return ""
    if isinstance(value, list):
        if not value:
            return ""
        for item in value:
            if isinstance(item, dict) and _int(item.get("id")) == language_id:
                return str(item.get("value") or "")
        first = value[0]
        return str(first.get("value") or "") if isinstance(first, dict) else str(first)
    if isinstance(value, dict):
        return str(value.get("value") or "")
    return str(value)


def _datetime(value: Any) -> Optional[datetime]:
    if not value or value == EMPTY_DATE:
        return None
    try:
        return datetime.strptime(str(value), "%Y-%m-%d %H:%M:%S")
    except ValueError:
        logger.warning(f"⚠️ Unparseable remote date '{value}'")
        return None


def _as_list(value: Any) -> List[Dict]:
    if isinstance(value, list):
        return [item for item in value if isinstance(item, dict)]
    if isinstance(value, dict):
        return [value]
    return []


class PrestashopConnector:
    """
    Thin wrapper around the shop webservice.

    Every call is a blocking GET. Transport failures and rejected
    credentials raise ConnectivityError; a resource that does not exist
    comes back as None or an empty list. No retries are attempted here.
    """

    def __init__(self, settings: SyncSettings, transport: Optional[httpx.BaseTransport] = None,
                 timeout: float = REMOTE_TIMEOUT_SECONDS):
        self.settings = settings
        self.language_id = settings.language_id

        params = {"output_format": "JSON"}
        auth = None
        if settings.use_ws_key_param:
            # For hosts that strip the Authorization header
            params["ws_key"] = settings.api_key
        else:
            auth = httpx.BasicAuth(settings.api_key, "")

        self.client = httpx.Client(
            base_url=f"{settings.shop_url}/api/",
            auth=auth,
            params=params,
            timeout=timeout,
            transport=transport,
        )

    def close(self):
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _get(self, resource: str, params: Optional[Dict[str, Any]] = None) -> List[Dict]:
        """Fetch a resource list. Returns [] when nothing matches."""
        try:
            response = self.client.get(resource, params=params or {})
        except httpx.HTTPError as e:
            logger.error(f"❌ Remote request to {resource} failed: {str(e)}")
            raise ConnectivityError(f"Cannot reach shop webservice ({resource}): {str(e)}")

        if response.status_code == 404:
            return []
        if response.status_code in (401, 403):
            raise ConnectivityError(
                f"Shop webservice rejected the API key ({response.status_code})",
                status_code=response.status_code
            )
        if response.status_code >= 400:
            raise ConnectivityError(
                f"Shop webservice returned {response.status_code} for {resource}",
                status_code=response.status_code,
                details={"body": response.text[:500]}
            )

        try:
            data = response.json()
        except ValueError:
            raise ConnectivityError(f"Shop webservice returned a non-JSON body for {resource}")

        # An empty result set is serialized as [] instead of an object
        if not isinstance(data, dict):
            return []
        return _as_list(data.get(resource))

    def _get_one(self, resource: str, resource_id: int) -> Optional[Dict]:
        if not resource_id or resource_id <= 0:
            return None
        rows = self._get(resource, {
            "filter[id]": f"[{resource_id}]",
            "display": "full",
            "limit": "1",
        })
        return rows[0] if rows else None

    # Orders

    def _parse_order(self, raw: Dict) -> RemoteOrder:
        associations = raw.get("associations") or {}

        lines = [
            RemoteOrderLine(
                product_id=_int(row.get("product_id")),
                product_reference=_text(row.get("product_reference")),
                product_name=_text(row.get("product_name"), self.language_id),
                quantity=_float(row.get("product_quantity")),
                unit_price_tax_incl=_float(row.get("unit_price_tax_incl")),
                unit_price_tax_excl=_float(row.get("unit_price_tax_excl")),
            )
            for row in _as_list(associations.get("order_rows"))
        ]

        history = []
        for key in ("order_state_histories", "order_histories", "order_history"):
            for row in _as_list(associations.get(key)):
                changed_at = _datetime(row.get("date_add"))
                if changed_at:
                    history.append(changed_at)
        history.sort(reverse=True)

        cart_rules = [
            _text(rule.get("name"), self.language_id)
            for rule in _as_list(associations.get("order_cart_rules"))
            if _text(rule.get("name"), self.language_id)
        ]

        return RemoteOrder(
            id=_int(raw.get("id")),
            reference=_text(raw.get("reference")),
            customer_id=_int(raw.get("id_customer")),
            invoice_address_id=_int(raw.get("id_address_invoice")),
            delivery_address_id=_int(raw.get("id_address_delivery")),
            current_state=_int(raw.get("current_state")),
            payment=_text(raw.get("payment")),
            module=_text(raw.get("module")),
            total_paid=_float(raw.get("total_paid")),
            total_shipping=_float(raw.get("total_shipping")),
            total_wrapping=_float(raw.get("total_wrapping_tax_incl", raw.get("total_wrapping"))),
            total_discounts=_float(raw.get("total_discounts_tax_incl", raw.get("total_discounts"))),
            date_add=_datetime(raw.get("date_add")),
            status_history=history,
            lines=lines,
            cart_rules=cart_rules,
        )

    def get_orders(self, limit: int, since_id: Optional[int] = None,
                   statuses: Optional[Iterable[int]] = None, newest_first: bool = False) -> List[RemoteOrder]:
        """Orders in ascending id order, starting at since_id inclusive."""
        params = {
            "display": "full",
            "sort": "[id_DESC]" if newest_first else "[id_ASC]",
            "limit": str(limit),
        }
        statuses = [int(s) for s in (statuses or [])]
        if statuses:
            params["filter[current_state]"] = "[" + "|".join(str(s) for s in statuses) + "]"
        if since_id:
            params["filter[id]"] = f"[{since_id},{MAX_REMOTE_ID}]"

        logger.info(f"🔍 Fetching up to {limit} orders from id {since_id or 0}")
        orders = [self._parse_order(raw) for raw in self._get("orders", params)]
        return sorted(orders, key=lambda o: o.id, reverse=newest_first)

    def get_order(self, order_id: int) -> Optional[RemoteOrder]:
        raw = self._get_one("orders", order_id)
        return self._parse_order(raw) if raw else None

    def get_order_line_details(self, order_id: int) -> List[RemoteOrderLine]:
        """
        Order lines with eco-tax fields, from the order_details resource.

        Returns [] when the resource cannot be read (keys often lack access
        to it), so callers fall back to the order's own rows.
        """
        try:
            rows = self._get("order_details", {
                "filter[id_order]": f"[{order_id}]",
                "display": "full",
            })
        except ConnectivityError as e:
            logger.warning(f"⚠️ Line details unavailable for order {order_id}, using order rows: {e.message}")
            return []
        return [
            RemoteOrderLine(
                product_id=_int(row.get("product_id")),
                product_reference=_text(row.get("product_reference")),
                product_name=_text(row.get("product_name"), self.language_id),
                quantity=_float(row.get("product_quantity")),
                unit_price_tax_incl=_float(row.get("unit_price_tax_incl")),
                unit_price_tax_excl=_float(row.get("unit_price_tax_excl")),
                ecotax=_float(row.get("ecotax")),
                ecotax_tax_rate=_float(row.get("ecotax_tax_rate")),
            )
            for row in sorted(rows, key=lambda r: _int(r.get("id")))
        ]

    def get_order_history(self, order_id: int) -> List[RemoteStatusChange]:
        """Status changes of an order, newest first."""
        rows = self._get("order_histories", {
            "filter[id_order]": f"[{order_id}]",
            "display": "full",
            "sort": "[date_add_DESC]",
        })
        changes = [
            RemoteStatusChange(
                id=_int(row.get("id")),
                order_id=_int(row.get("id_order")),
                state_id=_int(row.get("id_order_state")),
                date_add=_datetime(row.get("date_add")),
            )
            for row in rows
        ]
        return sorted(changes, key=lambda c: (c.date_add or datetime.min, c.id), reverse=True)

    def get_order_states(self) -> List[Tuple[int, str]]:
        rows = self._get("order_states", {"display": "[id,name]"})
        states = []
        for row in rows:
            state_id = _int(row.get("id"))
            name = _text(row.get("name"), self.language_id) or f"Status {state_id}"
            states.append((state_id, name))
        return sorted(states)

    # Customers and addresses

    def get_customer(self, customer_id: int) -> Optional[RemoteCustomer]:
        raw = self._get_one("customers", customer_id)
        if not raw:
            return None
        return RemoteCustomer(
            id=_int(raw.get("id")),
            firstname=_text(raw.get("firstname")),
            lastname=_text(raw.get("lastname")),
            email=_text(raw.get("email")),
            company=_text(raw.get("company")),
        )

    def get_address(self, address_id: int) -> Optional[RemoteAddress]:
        raw = self._get_one("addresses", address_id)
        if not raw:
            return None
        return RemoteAddress(
            id=_int(raw.get("id")),
            customer_id=_int(raw.get("id_customer")),
            firstname=_text(raw.get("firstname")),
            lastname=_text(raw.get("lastname")),
            company=_text(raw.get("company")),
            vat_number=_text(raw.get("vat_number")),
            dni=_text(raw.get("dni")),
            address1=_text(raw.get("address1")),
            address2=_text(raw.get("address2")),
            postcode=_text(raw.get("postcode")),
            city=_text(raw.get("city")),
            other=_text(raw.get("other")),
            phone=_text(raw.get("phone")),
            phone_mobile=_text(raw.get("phone_mobile")),
            country_id=_int(raw.get("id_country")),
            state_id=_int(raw.get("id_state")),
        )

    def get_country(self, country_id: int) -> Optional[RemoteCountry]:
        raw = self._get_one("countries", country_id)
        if not raw:
            return None
        return RemoteCountry(
            id=_int(raw.get("id")),
            iso_code=_text(raw.get("iso_code")),
            name=_text(raw.get("name"), self.language_id),
        )

    def get_state_name(self, state_id: int) -> Optional[str]:
        raw = self._get_one("states", state_id)
        return _text(raw.get("name"), self.language_id) if raw else None

    def test_connection(self) -> bool:
        """Raises ConnectivityError when the webservice is unusable."""
        self._get("order_states", {"display": "[id]", "limit": "1"})
        logger.info(f"✅ Connected to shop webservice at {self.settings.shop_url}")
        return True
