"""
Amount validation and formatting.

The Mint API expects fiat and payout amounts as decimal strings with exactly
two fractional digits ("10.00", not "10.0" or "10"). Formatting is done with
Decimal arithmetic on the original string so that values such as "1.005"
round consistently; float("1.005") is 1.00499999... and would round down.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from .errors import ValidationError

AMOUNT_PATTERN = re.compile(r"^\d+(\.\d+)?$")
CENT = Decimal("0.01")


def validate_amount(value: Union[str, int, Decimal]) -> str:
    """
    Check that an amount is a plain non-negative decimal in major units.

    Returns:
        The amount as a stripped string

    Raises:
        ValidationError: if the amount is not of the form "123" or "123.45"
    """
    text = str(value).strip()
    if not AMOUNT_PATTERN.match(text):
        raise ValidationError(
            f'Invalid amount format {value!r}. Must be a string representing major units (e.g. "1.00").'
        )
    return text


def format_amount(value: Union[str, int, Decimal]) -> str:
    """
    Format an amount to exactly two decimal places.

    Half-cent values are rounded half away from zero (ROUND_HALF_UP).

    Examples:
        >>> format_amount("1")
        '1.00'
        >>> format_amount("1.005")
        '1.01'
        >>> format_amount("1.004")
        '1.00'
    """
    text = validate_amount(value)
    try:
        dec_value = Decimal(text)
    except InvalidOperation as e:
        raise ValidationError(f"Invalid amount {value!r}: {e}") from e
    return str(dec_value.quantize(CENT, rounding=ROUND_HALF_UP))
