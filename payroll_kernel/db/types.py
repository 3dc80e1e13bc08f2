"""
Module: payroll_kernel.db.types
Responsibility: Currency minor units and the single sanctioned rounding
    function for monetary values.
Architecture position: Kernel > DB.  May be imported by every layer (engines
    included, since it is pure).  MUST NOT import services or modules.

Invariants enforced:
    - round_money() is the ONLY rounding function for money.  Engines round
      at line-item boundaries and nowhere else.
    - No floats: Decimal only.

Failure modes:
    - ValueError from minor_units() for a currency not in the table.
"""

from decimal import ROUND_HALF_UP, Decimal

DEFAULT_ROUNDING = ROUND_HALF_UP

# Minor units per ISO 4217 for the currencies payroll is run in.
CURRENCY_MINOR_UNITS: dict[str, int] = {
    "INR": 2,
    "USD": 2,
    "EUR": 2,
    "GBP": 2,
    "AED": 2,
    "SGD": 2,
    "AUD": 2,
    "CAD": 2,
    "LKR": 2,
    "NPR": 2,
    "BDT": 2,
    "JPY": 0,
    "KRW": 0,
    "BHD": 3,
    "KWD": 3,
    "OMR": 3,
}


def minor_units(currency: str) -> int:
    """Number of decimal places for a currency."""
    try:
        return CURRENCY_MINOR_UNITS[currency.upper()]
    except KeyError:
        raise ValueError(f"Unsupported payroll currency: {currency}") from None


def round_money(
    value: Decimal,
    decimal_places: int = 2,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    This is the only sanctioned rounding function for money.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places (the currency minor unit).
        rounding: Rounding mode (default: ROUND_HALF_UP).
    """
    exponent = Decimal(1).scaleb(-decimal_places)
    return value.quantize(exponent, rounding=rounding)
