"""Find or create the local customer behind a remote order."""

from order_sync.crud.ledger import SqlLedger
from order_sync.exceptions import ValidationError
from order_sync.helpers.countries import to_local_country_code
from order_sync.helpers.prestashop import PrestashopConnector
from order_sync.helpers.tax_rules import classify_tax_id, normalize_tax_id, synthetic_tax_id
from order_sync.models.ledger import Customer
from order_sync.models.remote import RemoteAddress, RemoteCustomer
from typing import Optional, Tuple
import logging

logger = logging.getLogger(__name__)


def _join_name(*parts: str) -> str:
    return " ".join(p.strip() for p in parts if p and p.strip())


def _address_lines(address: RemoteAddress) -> str:
    return "\n".join(line for line in (address.address1, address.address2) if line)


class CustomerResolver:
    """
    Resolves a remote customer + billing address to one local customer.

    Customers are deduplicated by the normalized tax identifier, so
    formatting variants of the same id land on the same record. Customers
    without a tax id get a synthetic one derived from the remote customer
    id, which keeps repeat buyers on a single record too.
    """

    def __init__(self, connector: PrestashopConnector, ledger: SqlLedger, default_country: str = "ESP"):
        self.connector = connector
        self.ledger = ledger
        self.default_country = default_country

    def country_code(self, address: RemoteAddress) -> str:
        country = self.connector.get_country(address.country_id) if address.country_id else None
        return to_local_country_code(country.iso_code if country else None, self.default_country)

    def region_name(self, address: RemoteAddress) -> Optional[str]:
        if not address.state_id:
            return None
        return self.connector.get_state_name(address.state_id) or None

    def resolve(self, remote_customer_id: int, billing_address_id: int) -> Customer:
        customer, _ = self.resolve_with_address(remote_customer_id, billing_address_id)
        return customer

    def resolve_with_address(self, remote_customer_id: int,
                             billing_address_id: int) -> Tuple[Customer, RemoteAddress]:
        """Resolve the customer and also return the fetched billing address."""
        remote_customer = self.connector.get_customer(remote_customer_id)
        if remote_customer is None:
            raise ValidationError(f"Remote customer {remote_customer_id} not found", field="customer_id")

        address = self.connector.get_address(billing_address_id)
        if address is None:
            raise ValidationError(f"Remote address {billing_address_id} not found", field="address_id")

        vat = address.vat_number.strip()
        personal_id = address.dni.strip()
        company = address.company.strip()
        is_business = bool(company and vat)
        search_key = vat or personal_id

        tax_id = search_key or synthetic_tax_id(remote_customer.id)
        tax_id_key = normalize_tax_id(tax_id)

        existing = self.ledger.find_customer_by_tax_key(tax_id_key)
        if existing:
            logger.info(f"🔍 Matched remote customer {remote_customer.id} to local customer {existing.code}")
            return self._refresh(existing, remote_customer, address), address

        customer = self._create(remote_customer, address, tax_id, tax_id_key, is_business, bool(search_key))
        return customer, address

    def _refresh(self, customer: Customer, remote_customer: RemoteCustomer, address: RemoteAddress) -> Customer:
        """Copy fresher contact and address data onto an existing customer."""
        fresh = {
            "email": remote_customer.email,
            "phone": address.phone_mobile or address.phone,
            "address": _address_lines(address),
            "postcode": address.postcode,
            "city": address.city,
            "region": self.region_name(address),
            "country_code": self.country_code(address),
        }

        changed = []
        for field, value in fresh.items():
            if value and getattr(customer, field) != value:
                setattr(customer, field, value)
                changed.append(field)

        if changed:
            logger.info(f"🔄 Updated customer {customer.code}: {', '.join(changed)}")
            self.ledger.save_customer(customer)
        return customer

    def _create(self, remote_customer: RemoteCustomer, address: RemoteAddress, tax_id: str,
                tax_id_key: str, is_business: bool, has_real_tax_id: bool) -> Customer:
        name = _join_name(address.firstname, address.lastname) or \
            _join_name(remote_customer.firstname, remote_customer.lastname)
        if not name:
            raise ValidationError(
                f"Cannot derive a name for remote customer {remote_customer.id}",
                field="name"
            )

        if is_business:
            legal_name = address.company.strip()
            tax_id_type = classify_tax_id(tax_id, is_business=True)
        else:
            legal_name = name
            tax_id_type = classify_tax_id(tax_id, is_business=False) if has_real_tax_id else "DNI"

        customer = Customer(
            name=name,
            legal_name=legal_name,
            is_individual=not is_business,
            tax_id=tax_id,
            tax_id_type=tax_id_type,
            tax_id_key=tax_id_key,
            email=remote_customer.email or None,
            phone=address.phone_mobile or address.phone or None,
            address=_address_lines(address) or None,
            postcode=address.postcode or None,
            city=address.city or None,
            region=self.region_name(address),
            country_code=self.country_code(address),
            notes=f"Imported from shop. Customer ID: {remote_customer.id}"
        )
        customer = self.ledger.save_customer(customer)
        logger.info(f"✅ Created customer {customer.code} ({name}, {tax_id_type} {tax_id})")
        return customer
