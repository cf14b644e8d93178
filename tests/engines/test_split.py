"""
Tests for the payment split engine.

The vendor amount is always the remainder, so the three parts add back
to the order value exactly.
"""

from decimal import Decimal

import pytest

from gst_engines.split import PaymentSplitCalculator, PayoutSplit, to_percentage
from gst_kernel.exceptions import InvalidAmount, InvalidPercentage


class TestSplit:
    def setup_method(self):
        self.calculator = PaymentSplitCalculator()

    def test_commission_and_withholding(self):
        split = self.calculator.split(
            order_value=1000000,
            commission_pct=Decimal("10"),
            withheld_pct=Decimal("1"),
            withholding_applicable=True,
        )
        assert split.commission_amount == 100000
        assert split.withheld_amount == 10000
        assert split.vendor_amount == 890000
        assert split.platform_amount == 110000

    def test_withholding_not_applicable(self):
        split = self.calculator.split(
            order_value=1000000,
            commission_pct=Decimal("10"),
            withheld_pct=Decimal("1"),
            withholding_applicable=False,
        )
        assert split.withheld_amount == 0
        assert split.vendor_amount == 900000

    def test_fractions_floor_and_vendor_takes_remainder(self):
        split = self.calculator.split(
            order_value=999,
            commission_pct=Decimal("10"),
            withheld_pct=Decimal("1"),
            withholding_applicable=True,
        )
        assert (split.commission_amount, split.withheld_amount, split.vendor_amount) == (99, 9, 891)

    @pytest.mark.parametrize(
        "order_value, commission, withheld",
        [
            (1, "10", "1"),
            (101, "33.33", "5"),
            (123457, "12.5", "1"),
            (10 ** 12, "7.25", "5"),
            (777, "0", "0"),
        ],
    )
    def test_parts_always_sum_to_order_value(self, order_value, commission, withheld):
        split = self.calculator.split(
            order_value=order_value,
            commission_pct=commission,
            withheld_pct=withheld,
            withholding_applicable=True,
        )
        total = split.commission_amount + split.withheld_amount + split.vendor_amount
        assert total == order_value
        assert split.vendor_amount >= 0

    def test_full_commission_leaves_vendor_nothing(self):
        split = self.calculator.split(
            order_value=5000,
            commission_pct=100,
            withheld_pct=0,
            withholding_applicable=False,
        )
        assert split.commission_amount == 5000
        assert split.vendor_amount == 0

    def test_combined_deductions_over_order_value(self):
        with pytest.raises(InvalidPercentage, match="exceed"):
            self.calculator.split(
                order_value=1000,
                commission_pct=Decimal("99"),
                withheld_pct=Decimal("5"),
                withholding_applicable=True,
            )

    @pytest.mark.parametrize("value", [0, -1, True, 10.5])
    def test_bad_order_value(self, value):
        with pytest.raises(InvalidAmount):
            self.calculator.split(
                order_value=value,
                commission_pct=Decimal("10"),
                withheld_pct=Decimal("1"),
                withholding_applicable=True,
            )

    def test_payment_id_and_dict_round_trip(self):
        split = self.calculator.split(
            order_value=1000,
            commission_pct="10",
            withheld_pct="1",
            withholding_applicable=True,
            payment_id="ORD-9",
        )
        assert PayoutSplit.from_dict(split.to_dict()) == split


class TestPercentages:
    @pytest.mark.parametrize("value", ["10", 10, Decimal("12.5"), "0", "100"])
    def test_accepted(self, value):
        assert to_percentage("commission_pct", value) == Decimal(value)

    @pytest.mark.parametrize("value", [10.0, True])
    def test_floats_and_bools_refused(self, value):
        with pytest.raises(InvalidPercentage, match="Decimal"):
            to_percentage("commission_pct", value)

    @pytest.mark.parametrize("value", ["-0.01", "100.01", "NaN", "Infinity"])
    def test_out_of_range(self, value):
        with pytest.raises(InvalidPercentage):
            to_percentage("commission_pct", value)

    @pytest.mark.parametrize("value", ["ten", None])
    def test_not_a_number(self, value):
        with pytest.raises(InvalidPercentage, match="not a decimal"):
            to_percentage("commission_pct", value)
