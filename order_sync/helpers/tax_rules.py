"""
Tax rules for turning remote prices into legal local tax rates.

Rates are Spanish VAT brackets. Remote prices carry whatever ratio the shop
computed, so the effective rate is snapped to the nearest legal bracket
before it is looked up in the tax map.
"""

from typing import Tuple
import re

GENERAL_RATE = 21.0
REDUCED_RATE = 10.0
SUPER_REDUCED_RATE = 4.0
ZERO_RATE = 0.0

# (lower bound of the computed rate, legal rate), highest first
RATE_BANDS = (
    (18.0, GENERAL_RATE),
    (7.0, REDUCED_RATE),
    (2.0, SUPER_REDUCED_RATE),
)

DEFAULT_ECOTAX_RATE = GENERAL_RATE

SYNTHETIC_TAX_ID_PREFIX = "PSECOM"

BUSINESS_ID_PATTERN = re.compile(r'^[A-W][0-9]{7}[0-9A-J]$')
NATIONAL_ID_PATTERN = re.compile(r'^\d{8}[A-Z]$')
FOREIGN_RESIDENT_ID_PATTERN = re.compile(r'^[XYZ]\d{7}[A-Z]$')


def snap_tax_rate(price_tax_incl: float, price_tax_excl: float) -> float:
    """
    Snap the rate implied by a price pair to a legal bracket.

    A tax exclusive price of zero, or one equal to the tax inclusive price,
    means rate 0. A negative one (eco-tax larger than the price) keeps the
    general rate. A computed rate sitting exactly on a band boundary goes
    to the higher bracket.
    """
    if price_tax_excl < 0:
        return GENERAL_RATE
    if price_tax_excl == 0 or price_tax_incl == price_tax_excl:
        return ZERO_RATE
    if price_tax_incl < price_tax_excl:
        return GENERAL_RATE

    computed = round((price_tax_incl / price_tax_excl - 1) * 100, 4)
    for lower_bound, rate in RATE_BANDS:
        if computed >= lower_bound:
            return rate
    return ZERO_RATE


def unbundle_ecotax(
    price_tax_incl: float,
    price_tax_excl: float,
    ecotax_tax_incl: float,
    ecotax_rate: float = 0.0
) -> Tuple[float, float, float, float]:
    """
    Split a bundled eco-tax out of a unit price.

    Returns (product price incl, product price excl, eco-tax excl, eco-tax rate).
    A zero eco-tax rate falls back to the general rate.
    """
    rate = ecotax_rate if ecotax_rate > 0 else DEFAULT_ECOTAX_RATE
    if ecotax_tax_incl <= 0:
        return price_tax_incl, price_tax_excl, 0.0, rate

    ecotax_tax_excl = ecotax_tax_incl / (1 + rate / 100)
    return (
        price_tax_incl - ecotax_tax_incl,
        price_tax_excl - ecotax_tax_excl,
        ecotax_tax_excl,
        rate,
    )


def price_without_tax(amount_tax_incl: float, rate: float) -> float:
    """Back-derive a tax exclusive amount, rounded to the cent."""
    if rate <= 0:
        return round(amount_tax_incl, 2)
    return round(amount_tax_incl / (1 + rate / 100), 2)


def normalize_tax_id(tax_id: str) -> str:
    """
    Dedup key for a government tax identifier.

    Whitespace and punctuation are dropped, letters upper-cased, and the
    result is rebuilt as all digits followed by all letters, so
    "B12345678", "b 12345678" and "12345678-B" share one key.
    """
    if not tax_id:
        return ""
    cleaned = re.sub(r'[^A-Z0-9]', '', tax_id.upper())
    digits = ''.join(ch for ch in cleaned if ch.isdigit())
    letters = ''.join(ch for ch in cleaned if ch.isalpha())
    return digits + letters


def classify_tax_id(tax_id: str, is_business: bool) -> str:
    """Identifier type (CIF, NIF, DNI or NIE) from its shape."""
    value = re.sub(r'[\s\-]', '', (tax_id or '').upper())
    if is_business:
        return "CIF" if BUSINESS_ID_PATTERN.match(value) else "NIF"
    if NATIONAL_ID_PATTERN.match(value):
        return "DNI"
    if FOREIGN_RESIDENT_ID_PATTERN.match(value):
        return "NIE"
    return "DNI"


def synthetic_tax_id(remote_customer_id: int) -> str:
    """Deterministic placeholder id for customers without a real tax id."""
    return f"{SYNTHETIC_TAX_ID_PREFIX}{int(remote_customer_id):06d}"
