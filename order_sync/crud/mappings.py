from sqlmodel import Session, select
from order_sync.models.mappings import TaxMap, PaymentMap
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)


def resolve_tax_code(db: Session, rate: float) -> Optional[str]:
    """Exact-match lookup of the local tax code for a snapped rate."""
    mapping = db.exec(select(TaxMap).where(TaxMap.rate == float(rate))).first()
    return mapping.tax_code if mapping else None


def resolve_payment_code(db: Session, payment_name: str) -> Optional[str]:
    """Exact-match lookup of the local payment code for a remote payment name."""
    if not payment_name:
        return None
    mapping = db.exec(select(PaymentMap).where(PaymentMap.payment_name == payment_name)).first()
    return mapping.payment_code if mapping else None


def save_tax_mapping(db: Session, rate: float, tax_code: str, remote_name: Optional[str] = None) -> TaxMap:
    """Create or update the mapping for a tax rate."""
    try:
        mapping = db.exec(select(TaxMap).where(TaxMap.rate == float(rate))).first()
        if mapping:
            mapping.tax_code = tax_code
            mapping.remote_name = remote_name or mapping.remote_name
        else:
            mapping = TaxMap(rate=float(rate), tax_code=tax_code, remote_name=remote_name)

        db.add(mapping)
        db.commit()
        db.refresh(mapping)
        logger.info(f"✅ Tax rate {rate}% mapped to {tax_code}")
        return mapping

    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to save tax mapping for rate {rate}: {str(e)}")
        raise


def save_payment_mapping(db: Session, payment_name: str, payment_code: str) -> PaymentMap:
    """Create or update the mapping for a payment method."""
    try:
        mapping = db.exec(select(PaymentMap).where(PaymentMap.payment_name == payment_name)).first()
        if mapping:
            mapping.payment_code = payment_code
        else:
            mapping = PaymentMap(payment_name=payment_name, payment_code=payment_code)

        db.add(mapping)
        db.commit()
        db.refresh(mapping)
        logger.info(f"✅ Payment method '{payment_name}' mapped to {payment_code}")
        return mapping

    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to save payment mapping for '{payment_name}': {str(e)}")
        raise


def get_tax_mappings(db: Session) -> List[TaxMap]:
    return db.exec(select(TaxMap).order_by(TaxMap.rate)).all()


def get_payment_mappings(db: Session) -> List[PaymentMap]:
    return db.exec(select(PaymentMap).order_by(PaymentMap.payment_name)).all()


def delete_tax_mapping(db: Session, rate: float) -> bool:
    try:
        mapping = db.exec(select(TaxMap).where(TaxMap.rate == float(rate))).first()
        if mapping is None:
            return False
        db.delete(mapping)
        db.commit()
        logger.info(f"✅ Removed tax mapping for rate {rate}%")
        return True

    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to delete tax mapping for rate {rate}: {str(e)}")
        raise


def delete_payment_mapping(db: Session, payment_name: str) -> bool:
    try:
        mapping = db.exec(select(PaymentMap).where(PaymentMap.payment_name == payment_name)).first()
        if mapping is None:
            return False
        db.delete(mapping)
        db.commit()
        logger.info(f"✅ Removed payment mapping for '{payment_name}'")
        return True

    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to delete payment mapping for '{payment_name}': {str(e)}")
        raise
