"""
Conversion of one remote order into a local sales document.

The whole document (customer changes, auto-created products, header,
lines and totals) is written in one transaction. Nothing is left behind
when any step fails.
"""

from order_sync.config import DEFAULT_COUNTRY_CODE, ECOTAX_LEGAL_NOTICE
from order_sync.crud.ledger import (
    SqlLedger, SHIPPING_REFERENCE, GIFT_WRAP_REFERENCE, DISCOUNT_REFERENCE, ECOTAX_REFERENCE
)
from order_sync.crud.mappings import resolve_payment_code, resolve_tax_code
from order_sync.exceptions import ConfigurationError, DuplicateDocumentError, MappingWarning, ValidationError
from order_sync.helpers.customer_resolver import CustomerResolver
from order_sync.helpers.dates import utcnow
from order_sync.helpers.ecotax_source import EcotaxOverrideSource
from order_sync.helpers.prestashop import PrestashopConnector
from order_sync.helpers.tax_rules import (
    GENERAL_RATE, ZERO_RATE, DEFAULT_ECOTAX_RATE,
    price_without_tax, snap_tax_rate, unbundle_ecotax
)
from order_sync.models.ledger import (
    Customer, Product, SalesDocument, SalesDocumentCreate, SalesDocumentLineCreate
)
from order_sync.models.remote import RemoteOrder, RemoteOrderLine
from order_sync.models.sync_config import SyncSettings
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from sqlmodel import Session
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)

GENERIC_DISCOUNT_NAME = "Discount / coupon"


class TransformStatus(str, Enum):
    IMPORTED = "imported"
    ALREADY_EXISTS = "already_exists"


@dataclass
class TransformResult:
    status: TransformStatus
    cross_reference: str
    document: Optional[SalesDocument] = None
    customer: Optional[Customer] = None
    warnings: List[MappingWarning] = field(default_factory=list)

    @property
    def imported(self) -> bool:
        return self.status == TransformStatus.IMPORTED


def order_reference(order: RemoteOrder) -> str:
    return order.reference.strip() if order.reference and order.reference.strip() else f"PS-{order.id}"


def latest_status_date(order: RemoteOrder, connector: PrestashopConnector) -> Optional[datetime]:
    """Date of the most recent status change, falling back to the creation date."""
    if order.status_history:
        return max(order.status_history)

    for change in connector.get_order_history(order.id):
        if change.date_add:
            return change.date_add

    return order.date_add


class OrderTransformer:

    def __init__(
        self,
        settings: SyncSettings,
        connector: PrestashopConnector,
        db: Session,
        ledger: Optional[SqlLedger] = None,
        resolver: Optional[CustomerResolver] = None,
        ecotax_source: Optional[EcotaxOverrideSource] = None,
        legal_notice: str = ECOTAX_LEGAL_NOTICE,
        default_country: str = DEFAULT_COUNTRY_CODE
    ):
        self.settings = settings
        self.connector = connector
        self.db = db
        self.ledger = ledger or SqlLedger(db)
        self.resolver = resolver or CustomerResolver(connector, self.ledger, default_country)
        self.ecotax_source = ecotax_source
        self.legal_notice = legal_notice

    def _warn(self, warnings: List[MappingWarning], message: str):
        logger.warning(f"⚠️ {message}")
        warnings.append(MappingWarning(message))

    def _tax_code(self, rate: float, warnings: List[MappingWarning]) -> Optional[str]:
        code = resolve_tax_code(self.db, rate)
        if code is None:
            self._warn(warnings, f"No tax mapping for rate {rate:g}%")
        return code

    def _reference_product(self, reference: str) -> Product:
        product = self.ledger.find_product_by_reference(reference)
        if product is None:
            raise ConfigurationError(
                f"Reference product {reference} is missing. Provision it before importing orders.",
                details={"reference": reference}
            )
        return product

    def _order_lines(self, order: RemoteOrder) -> List[RemoteOrderLine]:
        """Detailed lines with eco-tax, falling back to the order's own rows."""
        lines = self.connector.get_order_line_details(order.id)
        if lines:
            return lines

        logger.info(f"🔍 No line details for order {order.id}, using order rows without eco-tax")
        lines = list(order.lines)
        if self.ecotax_source and lines:
            overrides = self.ecotax_source.get_ecotax(line.product_id for line in lines)
            lines = [
                line.model_copy(update={
                    "ecotax": overrides[line.product_id] * (1 + DEFAULT_ECOTAX_RATE / 100),
                    "ecotax_tax_rate": DEFAULT_ECOTAX_RATE,
                })
                if line.ecotax <= 0 and overrides.get(line.product_id, 0) > 0 else line
                for line in lines
            ]
        return lines

    def _product_lines(self, lines: List[RemoteOrderLine], warnings: List[MappingWarning]):
        """Product lines, each followed by its eco-tax line when it carries one."""
        specs = []
        product_rates = []
        has_ecotax = False

        for line in lines:
            price_incl, price_excl, ecotax_excl, ecotax_rate = unbundle_ecotax(
                line.unit_price_tax_incl, line.unit_price_tax_excl, line.ecotax, line.ecotax_tax_rate
            )
            rate = snap_tax_rate(price_incl, price_excl)
            product_rates.append(rate)
            tax_code = self._tax_code(rate, warnings)

            reference = line.product_reference.strip() or f"PS-{line.product_id}"
            product = self.ledger.find_product_by_reference(reference)
            if product is None:
                self.ledger.create_product(reference, line.product_name or reference, tax_code, rate)

            specs.append(SalesDocumentLineCreate(
                reference=reference,
                description=line.product_name or reference,
                quantity=line.quantity,
                unit_price=round(price_excl, 6),
                tax_code=tax_code,
                tax_rate=rate
            ))

            if ecotax_excl > 0:
                has_ecotax = True
                self._reference_product(ECOTAX_REFERENCE)
                specs.append(SalesDocumentLineCreate(
                    reference=ECOTAX_REFERENCE,
                    description=f"Eco-tax - {line.product_name}".strip(" -"),
                    quantity=line.quantity,
                    unit_price=round(ecotax_excl, 2),
                    tax_code=self._tax_code(ecotax_rate, warnings),
                    tax_rate=ecotax_rate
                ))

        return specs, product_rates, has_ecotax

    def _extra_lines(self, order: RemoteOrder, rate: float, warnings: List[MappingWarning]):
        """Shipping, gift-wrap and discount lines."""
        specs = []
        tax_code = self._tax_code(rate, warnings) if any(
            amount > 0 for amount in (order.total_shipping, order.total_wrapping, order.total_discounts)
        ) else None

        if order.total_shipping > 0:
            product = self._reference_product(SHIPPING_REFERENCE)
            specs.append(SalesDocumentLineCreate(
                reference=product.reference,
                description=product.description,
                quantity=1,
                unit_price=price_without_tax(order.total_shipping, rate),
                tax_code=tax_code,
                tax_rate=rate
            ))

        if order.total_wrapping > 0:
            product = self._reference_product(GIFT_WRAP_REFERENCE)
            specs.append(SalesDocumentLineCreate(
                reference=product.reference,
                description=product.description,
                quantity=1,
                unit_price=price_without_tax(order.total_wrapping, rate),
                tax_code=tax_code,
                tax_rate=rate
            ))

        if order.total_discounts > 0:
            product = self._reference_product(DISCOUNT_REFERENCE)
            name = f"Discount: {', '.join(order.cart_rules)}" if order.cart_rules else GENERIC_DISCOUNT_NAME
            specs.append(SalesDocumentLineCreate(
                reference=product.reference,
                description=name,
                quantity=1,
                unit_price=-price_without_tax(order.total_discounts, rate),
                tax_code=tax_code,
                tax_rate=rate
            ))

        return specs

    def transform(self, order: RemoteOrder) -> TransformResult:
        """
        Import one remote order.

        Returns ALREADY_EXISTS without side effects when a document with the
        order's reference exists, including when a concurrent import commits
        the same reference first. Raises ValidationError, ConfigurationError
        or PersistenceError when the order cannot be imported; the
        transaction is rolled back in that case.
        """
        reference = order_reference(order)
        if self.ledger.find_document_by_cross_reference(reference):
            logger.info(f"🔍 Order {order.id} ({reference}) already imported")
            return TransformResult(TransformStatus.ALREADY_EXISTS, reference)

        warnings: List[MappingWarning] = []
        address_id = order.invoice_address_id or order.delivery_address_id
        if order.customer_id <= 0 or address_id <= 0:
            raise ValidationError(
                f"Order {order.id} has no customer or address",
                details={"customer_id": order.customer_id, "address_id": address_id}
            )

        try:
            customer, address = self.resolver.resolve_with_address(order.customer_id, address_id)

            status_date = latest_status_date(order, self.connector) or utcnow()

            payment_code = resolve_payment_code(self.db, order.payment)
            if payment_code is None:
                self._warn(warnings, f"No payment mapping for '{order.payment or '(empty)'}' on order {order.id}")

            lines = self._order_lines(order)
            if not lines:
                raise ValidationError(f"Order {order.id} has no lines", field="lines")

            line_specs, product_rates, has_ecotax = self._product_lines(lines, warnings)
            extras_rate = ZERO_RATE if all(rate == ZERO_RATE for rate in product_rates) else GENERAL_RATE
            line_specs.extend(self._extra_lines(order, extras_rate, warnings))

            notes = f"Imported from shop. Order ID: {order.id}"
            if has_ecotax and self.legal_notice:
                notes += f"\n\n{self.legal_notice}"

            header = SalesDocumentCreate(
                cross_reference=reference,
                warehouse_code=self.settings.warehouse_code,
                series_code=self.settings.series_for_status(order.current_state),
                payment_code=payment_code,
                document_date=status_date.date(),
                document_time=status_date.time(),
                address="\n".join(part for part in (address.address1, address.address2) if part) or None,
                postcode=address.postcode or None,
                city=address.city or None,
                region=self.resolver.region_name(address),
                po_box=address.other or None,
                phone1=address.phone or None,
                phone2=address.phone_mobile or None,
                country_code=self.resolver.country_code(address),
                notes=notes
            )

            document = self.ledger.create_document(customer, header)
            for spec in line_specs:
                self.ledger.add_line(document, spec)
            self.ledger.recalculate_totals(document)
            self.ledger.commit(cross_reference=reference)

        except DuplicateDocumentError:
            logger.info(f"🔍 Order {order.id} ({reference}) was imported concurrently")
            return TransformResult(TransformStatus.ALREADY_EXISTS, reference, warnings=warnings)
        except Exception:
            self.ledger.rollback()
            raise

        logger.info(
            f"✅ Imported order {order.id} ({reference}) as document {document.id}, total {document.total:.2f}"
        )
        return TransformResult(TransformStatus.IMPORTED, reference, document, customer, warnings)
