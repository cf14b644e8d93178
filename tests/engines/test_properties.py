"""
Property-based tests for the pure engines.

Hypothesis generates amounts, rates and identifiers and checks the
arithmetic rules hold for all of them:
- The payment split always adds back to the order value exactly
- CGST and SGST are equal halves, each floored; IGST is floored once
- TDS withholds on the whole payout once the running total crosses
  the threshold, never before
- A GSTIN built with the computed check character validates, and no
  other check character does
"""

from datetime import datetime, timezone
from decimal import Decimal

from hypothesis import HealthCheck, assume, given, settings
from hypothesis import strategies as st
from hypothesis.strategies import composite

from gst_engines.gst import GSTCalculator
from gst_engines.gstin import (
    CHECKSUM_ALPHABET,
    DEFAULT_STATE_CODES,
    compute_check_character,
    is_valid_gstin,
)
from gst_engines.rates import RateEntry, RateResolver
from gst_engines.split import PaymentSplitCalculator
from gst_engines.tds import TDSCalculator, TdsPolicy
from gst_kernel.domain.fiscal import FiscalCalendar
from gst_kernel.domain.invoice import TaxType

JULY = datetime(2024, 7, 15, 6, 30, tzinfo=timezone.utc)
UPPERCASE = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
DIGITS = "0123456789"


# =============================================================================
# Strategies
# =============================================================================


amounts = st.integers(min_value=1, max_value=10 ** 12)
percentages = st.decimals(min_value=0, max_value=100, places=2)


@composite
def deduction_pairs(draw):
    """Commission and withholding percentages that together stay within 100."""
    commission = draw(percentages)
    withheld = draw(st.decimals(min_value=0, max_value=100 - commission, places=2))
    return commission, withheld


@composite
def gstin_bodies(draw):
    """The first fourteen characters of a structurally valid GSTIN."""
    state = draw(st.sampled_from(sorted(DEFAULT_STATE_CODES)))
    pan = (
        draw(st.text(alphabet=UPPERCASE, min_size=5, max_size=5))
        + draw(st.text(alphabet=DIGITS, min_size=4, max_size=4))
        + draw(st.sampled_from(UPPERCASE))
    )
    entity = draw(st.sampled_from(DIGITS[1:] + UPPERCASE))
    return f"{state}{pan}{entity}Z"


def _calculator_for(rate):
    return GSTCalculator(RateResolver([RateEntry("9999", rate, "test", "Generated rate")]))


# =============================================================================
# Payment split
# =============================================================================


class TestSplitProperties:
    @given(order_value=amounts, pcts=deduction_pairs(), applicable=st.booleans())
    @settings(max_examples=300)
    def test_parts_sum_to_order_value(self, order_value, pcts, applicable):
        commission_pct, withheld_pct = pcts
        split = PaymentSplitCalculator().split(
            order_value=order_value,
            commission_pct=commission_pct,
            withheld_pct=withheld_pct,
            withholding_applicable=applicable,
        )
        assert split.commission_amount + split.withheld_amount + split.vendor_amount == order_value
        assert split.vendor_amount >= 0
        assert split.commission_amount == order_value * int(commission_pct * 100) // 10000
        if not applicable:
            assert split.withheld_amount == 0

    @given(order_value=amounts)
    def test_boundary_percentages(self, order_value):
        calculator = PaymentSplitCalculator()
        nothing = calculator.split(
            order_value=order_value, commission_pct=0, withheld_pct=0,
            withholding_applicable=True,
        )
        assert nothing.vendor_amount == order_value
        everything = calculator.split(
            order_value=order_value, commission_pct=100, withheld_pct=0,
            withholding_applicable=True,
        )
        assert everything.commission_amount == order_value
        assert everything.vendor_amount == 0


# =============================================================================
# GST
# =============================================================================


class TestGstProperties:
    @given(base=amounts, rate=percentages, state=st.sampled_from(["27", "29", "07", "33"]))
    @settings(max_examples=300, suppress_health_check=[HealthCheck.too_slow])
    def test_same_jurisdiction_halves_floored(self, base, rate, state):
        result = _calculator_for(rate).calculate(
            base_amount=base,
            classification_code="9999",
            buyer_jurisdiction=state,
            seller_jurisdiction=state,
        )
        expected_half = base * int(rate * 100) // 20000
        assert result.tax_type == TaxType.SAME_JURISDICTION
        assert result.cgst == result.sgst == expected_half
        assert result.igst == 0
        # The halves never add up to more than the combined rate would
        assert result.total_tax <= base * int(rate * 100) // 10000

    @given(base=amounts, rate=percentages, states=st.sampled_from([("27", "29"), ("07", "33")]))
    @settings(max_examples=300, suppress_health_check=[HealthCheck.too_slow])
    def test_cross_jurisdiction_igst_floored(self, base, rate, states):
        buyer, seller = states
        result = _calculator_for(rate).calculate(
            base_amount=base,
            classification_code="9999",
            buyer_jurisdiction=buyer,
            seller_jurisdiction=seller,
        )
        assert result.tax_type == TaxType.CROSS_JURISDICTION
        assert (result.cgst, result.sgst) == (0, 0)
        assert result.igst == base * int(rate * 100) // 10000
        assert result.total == base + result.igst


# =============================================================================
# TDS
# =============================================================================


class TestTdsProperties:
    @given(
        gross=st.integers(min_value=1, max_value=10 ** 9),
        before=st.integers(min_value=0, max_value=10 ** 9),
        has_tax_id=st.booleans(),
    )
    @settings(max_examples=200)
    def test_threshold_and_whole_payout_rate(self, gross, before, has_tax_id):
        calculator = TDSCalculator(TdsPolicy(threshold=50000), FiscalCalendar())
        record = calculator.calculate(
            vendor_id="V1",
            gross_amount=gross,
            has_tax_id=has_tax_id,
            transaction_at=JULY,
            cumulative_before=before,
        )
        percent = 1 if has_tax_id else 5
        assert record.cumulative_after == before + gross
        assert record.applicable == (before + gross >= 50000)
        expected = gross * percent // 100 if record.applicable else 0
        assert record.withheld_amount == expected
        assert record.withheld_amount + record.net_amount == gross


# =============================================================================
# GSTIN check character
# =============================================================================


class TestGstinProperties:
    @given(body=gstin_bodies())
    @settings(max_examples=300)
    def test_computed_check_character_validates(self, body):
        assert is_valid_gstin(body + compute_check_character(body))

    @given(body=gstin_bodies(), wrong=st.sampled_from(CHECKSUM_ALPHABET))
    @settings(max_examples=300)
    def test_other_check_characters_fail(self, body, wrong):
        assume(wrong != compute_check_character(body))
        assert not is_valid_gstin(body + wrong)

    @given(body=gstin_bodies(), data=st.data())
    @settings(max_examples=200)
    def test_single_substitution_detected(self, body, data):
        gstin = body + compute_check_character(body)
        position = data.draw(st.integers(min_value=0, max_value=13))
        replacement = data.draw(st.sampled_from(CHECKSUM_ALPHABET))
        assume(replacement != gstin[position])
        altered = gstin[:position] + replacement + gstin[position + 1:]
        assert not is_valid_gstin(altered)
