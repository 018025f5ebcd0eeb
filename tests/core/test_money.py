from decimal import Decimal

from outlet_erp.shared.utils.money import round_money, round_quantity, unit_cost_from_purchase


class TestRoundMoney:
    """Tests for round_money function."""

    def test_round_half_up(self):
        assert round_money(Decimal("10.125")) == Decimal("10.13")
        assert round_money(Decimal("10.124")) == Decimal("10.12")
        assert round_money("10.115") == Decimal("10.12")

    def test_from_int(self):
        assert round_money(100) == Decimal("100.00")
        assert round_money(0) == Decimal("0.00")

    def test_negative_numbers(self):
        """Negative halves round toward zero."""
        assert round_money(Decimal("-10.125")) == Decimal("-10.12")
        assert round_money(Decimal("-10.126")) == Decimal("-10.13")

    def test_precision(self):
        assert str(round_money(10)) == "10.00"
        assert str(round_money("10.1")) == "10.10"


class TestQuantities:
    def test_round_quantity_keeps_three_places(self):
        assert round_quantity("1.2345") == Decimal("1.235")
        assert str(round_quantity(2)) == "2.000"

    def test_unit_cost_from_purchase(self):
        """A 12-carton box at 120000 costs 10000 per carton."""
        assert unit_cost_from_purchase(Decimal("120000.00"), Decimal("12")) == Decimal("10000.00")
        assert unit_cost_from_purchase(Decimal("100.00"), Decimal("3")) == Decimal("33.33")

    def test_unit_cost_with_non_positive_rate(self):
        assert unit_cost_from_purchase(Decimal("55.5"), Decimal("0")) == Decimal("55.50")
