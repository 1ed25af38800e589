"""
Tests for tax snapping, eco-tax unbundling and tax identifier handling.
"""
import pytest
from order_sync.helpers.countries import to_local_country_code
from order_sync.helpers.tax_rules import (
    classify_tax_id, normalize_tax_id, price_without_tax,
    snap_tax_rate, synthetic_tax_id, unbundle_ecotax
)


class TestSnapTaxRate:
    """Rates implied by price pairs snap to the legal brackets."""

    @pytest.mark.parametrize("incl, excl, expected", [
        (12.10, 10.00, 21.0),
        (11.00, 10.00, 10.0),
        (10.40, 10.00, 4.0),
        (10.00, 10.00, 0.0),
        (24.79, 20.49, 21.0),  # rounded shop prices
        (5.50, 5.00, 10.0),
    ])
    def test_standard_ratios(self, incl, excl, expected):
        assert snap_tax_rate(incl, excl) == expected

    def test_boundaries_resolve_to_higher_bracket(self):
        assert snap_tax_rate(118.0, 100.0) == 21.0
        assert snap_tax_rate(107.0, 100.0) == 10.0
        assert snap_tax_rate(102.0, 100.0) == 4.0

    def test_below_lowest_band_is_zero(self):
        assert snap_tax_rate(101.0, 100.0) == 0.0

    def test_zero_excl_price_forces_zero_rate(self):
        assert snap_tax_rate(5.0, 0.0) == 0.0
        assert snap_tax_rate(0.0, 0.0) == 0.0

    def test_negative_excl_price_keeps_general_rate(self):
        """Eco-tax larger than the product price leaves a negative remainder."""
        assert snap_tax_rate(-1.21, -1.00) == 21.0
        assert snap_tax_rate(0.50, -0.20) == 21.0


class TestUnbundleEcotax:

    def test_no_ecotax_leaves_prices_alone(self):
        assert unbundle_ecotax(12.10, 10.00, 0.0, 0.0) == (12.10, 10.00, 0.0, 21.0)

    def test_zero_ecotax_rate_falls_back_to_general(self):
        _, _, ecotax_excl, rate = unbundle_ecotax(121.0, 100.0, 12.10, 0.0)
        assert rate == 21.0
        assert ecotax_excl == pytest.approx(10.0)

    @pytest.mark.parametrize("price_incl, price_excl, ecotax, ecotax_rate", [
        (121.00, 100.00, 12.10, 21.0),
        (60.50, 50.00, 2.00, 21.0),
        (89.95, 74.34, 1.38, 21.0),
        (33.00, 30.00, 0.55, 10.0),
    ])
    def test_round_trip_restores_original_price(self, price_incl, price_excl, ecotax, ecotax_rate):
        """Product + eco-tax lines, re-inflated by their own rates, add back up to the original price."""
        incl, excl, ecotax_excl, rate = unbundle_ecotax(price_incl, price_excl, ecotax, ecotax_rate)
        product_rate = snap_tax_rate(incl, excl)

        product_line = round(excl, 6)
        ecotax_line = round(ecotax_excl, 2)
        rebuilt = product_line * (1 + product_rate / 100) + ecotax_line * (1 + rate / 100)

        assert rebuilt == pytest.approx(price_incl, abs=0.01)


class TestTaxIdentifiers:

    def test_formatting_variants_share_a_key(self):
        keys = {normalize_tax_id(v) for v in ("B12345678", "b 12345678", "12345678-B")}
        assert keys == {"12345678B"}

    def test_punctuation_is_stripped(self):
        assert normalize_tax_id(" 12.345.678-z ") == "12345678Z"

    def test_empty_identifier(self):
        assert normalize_tax_id("") == ""
        assert normalize_tax_id(None) == ""

    def test_business_identifiers(self):
        assert classify_tax_id("B12345678", is_business=True) == "CIF"
        assert classify_tax_id("b-1234567-j", is_business=True) == "CIF"
        assert classify_tax_id("FR12345678901", is_business=True) == "NIF"

    def test_personal_identifiers(self):
        assert classify_tax_id("12345678Z", is_business=False) == "DNI"
        assert classify_tax_id("X1234567L", is_business=False) == "NIE"
        assert classify_tax_id("PASSPORT99", is_business=False) == "DNI"

    def test_synthetic_id_is_deterministic(self):
        assert synthetic_tax_id(42) == "PSECOM000042"
        assert synthetic_tax_id(42) == synthetic_tax_id("42")


class TestAmountsAndCountries:

    def test_price_without_tax(self):
        assert price_without_tax(6.05, 21.0) == 5.00
        assert price_without_tax(5.00, 0.0) == 5.00

    def test_country_codes(self):
        assert to_local_country_code("ES") == "ESP"
        assert to_local_country_code("fr") == "FRA"
        assert to_local_country_code("ZZ") == "ESP"
        assert to_local_country_code(None, fallback="PRT") == "PRT"
