from decimal import ROUND_HALF_DOWN, ROUND_HALF_UP, Decimal
from typing import Union

ZERO = Decimal("0")


def round_money(value: Union[Decimal, float, int, str]) -> Decimal:
    """
    Round monetary value to 2 decimal places using ROUND_HALF_UP.

    Examples:
        >>> round_money(10.125)
        Decimal('10.13')
        >>> round_money("10.115")
        Decimal('10.12')
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if value < 0:
        return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_DOWN)
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def round_quantity(value: Union[Decimal, float, int, str]) -> Decimal:
    """Round a stock quantity to 3 decimal places (the base-unit precision)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(Decimal("0.001"), rounding=ROUND_HALF_UP)


def unit_cost_from_purchase(price_per_unit: Decimal, conversion_rate: Decimal) -> Decimal:
    """Cost of one base unit when a purchase unit holds `conversion_rate` base units."""
    if conversion_rate <= 0:
        return round_money(price_per_unit)
    return round_money(Decimal(price_per_unit) / Decimal(conversion_rate))
