"""Tests for the HSN rate table lookup."""

from decimal import Decimal

import pytest

from gst_engines.rates import RateEntry, RateResolver
from gst_kernel.exceptions import NotFoundError, UnknownClassification, ValidationError


def _entry(code="8471", rate="12", category="electronics", exempt=False):
    return RateEntry(
        classification_code=code,
        rate=Decimal(rate),
        category=category,
        description="",
        is_exempt=exempt,
    )


class TestRateEntry:
    def test_valid_entry(self):
        entry = _entry(rate="12.00")
        assert entry.rate == Decimal("12")

    def test_rate_must_be_decimal(self):
        with pytest.raises(TypeError):
            RateEntry("8471", 12, "electronics", "")

    @pytest.mark.parametrize("rate", ["-1", "100.01"])
    def test_rate_outside_bounds(self, rate):
        with pytest.raises(ValueError, match="outside"):
            _entry(rate=rate)

    def test_more_than_two_places_rejected(self):
        with pytest.raises(ValueError, match="two decimal places"):
            _entry(rate="12.125")

    def test_exempt_needs_zero_rate(self):
        with pytest.raises(ValueError, match="zero rate"):
            _entry(code="4901", rate="5", exempt=True)

    def test_empty_code_rejected(self):
        with pytest.raises(ValueError):
            _entry(code="")


class TestRateResolver:
    def setup_method(self):
        self.resolver = RateResolver([
            _entry("8471", "12"),
            _entry("3304", "18", "cosmetics"),
            _entry("4901", "0", "books", exempt=True),
        ])

    def test_lookup(self):
        assert self.resolver.rate("3304").rate == Decimal("18")
        assert "8471" in self.resolver
        assert len(self.resolver) == 3

    def test_unknown_code(self):
        with pytest.raises(UnknownClassification) as exc_info:
            self.resolver.rate("9999")
        assert exc_info.value.classification_code == "9999"
        # Reported as both a bad input and a missing reference row
        assert isinstance(exc_info.value, ValidationError)
        assert isinstance(exc_info.value, NotFoundError)

    def test_all_is_sorted_by_code(self):
        assert [e.classification_code for e in self.resolver.all()] == ["3304", "4901", "8471"]

    def test_by_category(self):
        assert [e.classification_code for e in self.resolver.by_category("books")] == ["4901"]

    def test_duplicate_codes_rejected(self):
        with pytest.raises(ValueError, match="duplicate"):
            RateResolver([_entry("8471"), _entry("8471", "18")])


def test_engine_rate_table_matches_configuration(engine):
    assert engine.rates.rate("8517").rate == Decimal("12")
    assert engine.rates.rate("6204").rate == Decimal("5")
    assert engine.rates.rate("3304").rate == Decimal("18")
    exempt = engine.rates.rate("4901")
    assert exempt.is_exempt and exempt.rate == 0
