from sqlmodel import Session, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from order_sync.exceptions import DuplicateDocumentError, PersistenceError
from order_sync.helpers.dates import utcnow
from order_sync.helpers.tax_rules import GENERAL_RATE
from order_sync.models.ledger import (
    Customer, Product, SalesDocument, SalesDocumentLine,
    SalesDocumentCreate, SalesDocumentLineCreate
)
from decimal import Decimal, ROUND_HALF_UP
from collections import defaultdict
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)

SHIPPING_REFERENCE = "SHOP-SHIPPING"
GIFT_WRAP_REFERENCE = "SHOP-GIFTWRAP"
DISCOUNT_REFERENCE = "SHOP-DISCOUNT"
ECOTAX_REFERENCE = "SHOP-ECOTAX"

REFERENCE_PRODUCTS = {
    SHIPPING_REFERENCE: "Shipping costs",
    GIFT_WRAP_REFERENCE: "Gift wrapping",
    DISCOUNT_REFERENCE: "Discount",
    ECOTAX_REFERENCE: "Eco-tax",
}

CENT = Decimal("0.01")


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def ensure_reference_products(db: Session, tax_code: Optional[str] = "IVA21") -> List[Product]:
    """Create the fixed products used for shipping, gift-wrap, discount and eco-tax lines."""
    try:
        created = []
        for reference, description in REFERENCE_PRODUCTS.items():
            existing = db.exec(select(Product).where(Product.reference == reference)).first()
            if existing:
                continue
            product = Product(
                reference=reference,
                description=description,
                tax_code=tax_code,
                tax_rate=GENERAL_RATE,
                sellable=True,
                track_stock=False
            )
            db.add(product)
            created.append(product)

        db.commit()
        for product in created:
            logger.info(f"✅ Provisioned reference product {product.reference}")
        return created

    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to provision reference products: {str(e)}")
        raise


class SqlLedger:
    """
    Local ledger backed by the application database.

    Writes are flushed but not committed, so one order (customer, products,
    document, lines) lands in a single transaction closed by commit() or
    rollback().
    """

    def __init__(self, db: Session):
        self.db = db

    def _flush(self, what: str, cross_reference: Optional[str] = None):
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            if cross_reference:
                logger.warning(f"⚠️ Document {cross_reference} already exists: {str(e.orig)}")
                raise DuplicateDocumentError(cross_reference)
            logger.error(f"❌ Ledger rejected {what}: {str(e.orig)}")
            raise PersistenceError(f"Ledger rejected {what}: {str(e.orig)}")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Ledger rejected {what}: {str(e)}")
            raise PersistenceError(f"Ledger rejected {what}: {str(e)}")

    # Lookups

    def find_document_by_cross_reference(self, cross_reference: str) -> Optional[SalesDocument]:
        return self.db.exec(
            select(SalesDocument).where(SalesDocument.cross_reference == cross_reference)
        ).first()

    def find_customer_by_tax_key(self, tax_id_key: str) -> Optional[Customer]:
        if not tax_id_key:
            return None
        return self.db.exec(
            select(Customer).where(Customer.tax_id_key == tax_id_key).order_by(Customer.id)
        ).first()

    def find_product_by_reference(self, reference: str) -> Optional[Product]:
        if not reference:
            return None
        return self.db.exec(select(Product).where(Product.reference == reference)).first()

    def get_lines(self, document: SalesDocument) -> List[SalesDocumentLine]:
        return self.db.exec(
            select(SalesDocumentLine)
            .where(SalesDocumentLine.document_id == document.id)
            .order_by(SalesDocumentLine.position)
        ).all()

    # Writes

    def save_customer(self, customer: Customer) -> Customer:
        customer.updated_at = utcnow()
        self.db.add(customer)
        self._flush(f"customer {customer.name}")
        if not customer.code:
            customer.code = f"{customer.id:06d}"
            self.db.add(customer)
            self._flush(f"customer {customer.name}")
        return customer

    def create_product(self, reference: str, description: str, tax_code: Optional[str],
                       tax_rate: float) -> Product:
        product = Product(
            reference=reference,
            description=description[:100] if description else reference,
            tax_code=tax_code,
            tax_rate=tax_rate,
            sellable=True,
            track_stock=False
        )
        self.db.add(product)
        self._flush(f"product {reference}")
        logger.info(f"✅ Auto-created product {reference} ({tax_code or 'no tax code'})")
        return product

    def create_document(self, customer: Customer, header: SalesDocumentCreate) -> SalesDocument:
        document = SalesDocument(
            **header.model_dump(),
            customer_id=customer.id,
            customer_code=customer.code,
            customer_name=customer.name,
            tax_id=customer.tax_id
        )
        self.db.add(document)
        self._flush(f"document {header.cross_reference}", cross_reference=header.cross_reference)
        return document

    def add_line(self, document: SalesDocument, line: SalesDocumentLineCreate) -> SalesDocumentLine:
        position = len(self.get_lines(document))
        row = SalesDocumentLine(
            **line.model_dump(),
            document_id=document.id,
            position=position,
            line_total=float(_money(Decimal(str(line.quantity)) * Decimal(str(line.unit_price))))
        )
        self.db.add(row)
        self._flush(f"line {position} of document {document.cross_reference}")
        return row

    def recalculate_totals(self, document: SalesDocument) -> SalesDocument:
        """Net, tax and surcharge per rate group, rounded to the cent; total = net + tax + surcharge."""
        bases = defaultdict(Decimal)
        surcharge_bases = defaultdict(Decimal)
        for line in self.get_lines(document):
            base = _money(Decimal(str(line.quantity)) * Decimal(str(line.unit_price)))
            bases[Decimal(str(line.tax_rate))] += base
            if line.surcharge_rate:
                surcharge_bases[Decimal(str(line.surcharge_rate))] += base

        net = sum(bases.values(), Decimal("0"))
        tax = sum((_money(base * rate / 100) for rate, base in bases.items()), Decimal("0"))
        surcharge = sum((_money(base * rate / 100) for rate, base in surcharge_bases.items()), Decimal("0"))

        document.net = float(_money(net))
        document.total_tax = float(_money(tax))
        document.total_surcharge = float(_money(surcharge))
        document.total = float(_money(net + tax + surcharge))
        self.db.add(document)
        self._flush(f"totals of document {document.cross_reference}")
        return document

    def commit(self, cross_reference: Optional[str] = None):
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Commit hit a unique constraint: {str(e.orig)}")
            if cross_reference:
                raise DuplicateDocumentError(cross_reference)
            raise PersistenceError(f"Ledger commit failed: {str(e.orig)}")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Ledger commit failed: {str(e)}")
            raise PersistenceError(f"Ledger commit failed: {str(e)}")

    def rollback(self):
        self.db.rollback()
