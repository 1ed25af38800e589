"""
Tests for the tax rate and payment method mapping tables.
"""
from order_sync.crud.mappings import (
    delete_payment_mapping, delete_tax_mapping, get_payment_mappings, get_tax_mappings,
    resolve_payment_code, resolve_tax_code, save_payment_mapping, save_tax_mapping
)


def test_tax_codes_resolve_by_exact_rate(provisioned):
    assert resolve_tax_code(provisioned, 21.0) == "IVA21"
    assert resolve_tax_code(provisioned, 4) == "IVA4"
    assert resolve_tax_code(provisioned, 0.0) == "IVA0"
    assert resolve_tax_code(provisioned, 5.0) is None


def test_saving_a_rate_twice_updates_it(provisioned):
    save_tax_mapping(provisioned, 21.0, "G21", remote_name="IVA ES 21%")

    assert resolve_tax_code(provisioned, 21.0) == "G21"
    assert [m.rate for m in get_tax_mappings(provisioned)] == [0.0, 4.0, 10.0, 21.0]


def test_payment_codes(provisioned):
    save_payment_mapping(provisioned, "PayPal", "PAYPAL")
    save_payment_mapping(provisioned, "PayPal", "PP")

    assert resolve_payment_code(provisioned, "PayPal") == "PP"
    assert resolve_payment_code(provisioned, "paypal") is None
    assert resolve_payment_code(provisioned, "") is None
    assert [m.payment_name for m in get_payment_mappings(provisioned)] == ["Bank transfer", "PayPal"]


def test_deleting_mappings(provisioned):
    assert delete_tax_mapping(provisioned, 4.0) is True
    assert delete_tax_mapping(provisioned, 4.0) is False
    assert resolve_tax_code(provisioned, 4.0) is None

    assert delete_payment_mapping(provisioned, "Bank transfer") is True
    assert resolve_payment_code(provisioned, "Bank transfer") is None
