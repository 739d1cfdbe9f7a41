"""
Money Helpers

Monetary math is done in integer cents. Decimal strings coming back from the
storage layer are converted with string/integer arithmetic only, never via
float.
"""

from decimal import Decimal
from typing import Optional, Union

DecimalLike = Union[str, int, Decimal, None]


def decimal_to_cents(value: DecimalLike) -> int:
    """
    Convert a decimal amount to integer cents.

    The integer and fraction parts are split on the decimal point, the
    fraction is padded or truncated to two digits and the sign is preserved.

    Examples:
        decimal_to_cents("12.3") -> 1230
        decimal_to_cents("-1.5") -> -150
        decimal_to_cents("0") -> 0

    Args:
        value: Decimal string (or int / Decimal). None or "" means no data.

    Returns:
        Amount in cents

    Raises:
        ValueError: If the value is not a plain decimal number
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValueError("Boolean is not a monetary amount")
    if isinstance(value, int):
        return value * 100
    if isinstance(value, Decimal):
        # Fixed-point notation, no exponent
        value = format(value, "f")

    text = str(value).strip()
    if text == "":
        return 0

    negative = text.startswith("-")
    if text[0] in "+-":
        text = text[1:]

    whole, _, fraction = text.partition(".")
    if whole == "" and fraction == "":
        raise ValueError(f"Not a decimal amount: {value!r}")
    if (whole and not whole.isdigit()) or (fraction and not fraction.isdigit()):
        raise ValueError(f"Not a decimal amount: {value!r}")

    # Pad or truncate to two fraction digits
    fraction = (fraction + "00")[:2]
    cents = int(whole or "0") * 100 + int(fraction)
    return -cents if negative else cents


def cents_to_decimal_string(cents: int, currency: Optional[str] = None) -> str:
    """
    Format integer cents as a decimal string ("-1.50", "12.30 AUD").
    """
    sign = "-" if cents < 0 else ""
    whole, fraction = divmod(abs(int(cents)), 100)
    amount = f"{sign}{whole}.{fraction:02d}"
    return f"{amount} {currency}" if currency else amount
