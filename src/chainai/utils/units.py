"""Conversion between human-readable amounts and integer base units.

All math is done with Decimal under a wide local context so amounts that
are exact in decimal never pick up floating-point drift.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext

from chainai.errors import InvalidAmountError

MAX_UINT256 = 2**256 - 1

# Enough digits for any uint256 amount plus fractional part
_PRECISION = 100


def parse_amount(amount: str) -> Decimal:
    """Parse a human amount, requiring a positive finite decimal.

    Raises:
        InvalidAmountError: On zero, negative, non-numeric or non-finite input
    """
    text = str(amount).strip() if amount is not None else ""
    try:
        value = Decimal(text)
    except (InvalidOperation, ValueError):
        raise InvalidAmountError(f"Amount must be a positive number, got '{amount}'") from None

    if not value.is_finite() or value <= 0:
        raise InvalidAmountError(f"Amount must be a positive number, got '{amount}'")
    return value


def parse_units(amount: str, decimals: int) -> int:
    """Scale a positive human amount to integer base units.

    Args:
        amount: Decimal string, e.g. "1.5"
        decimals: Token decimals, e.g. 18

    Returns:
        round(amount * 10**decimals) as int

    Raises:
        InvalidAmountError: If amount is not a positive finite decimal,
            rounds to zero, or exceeds uint256
    """
    if decimals < 0:
        raise ValueError(f"decimals must be >= 0, got {decimals}")

    value = parse_amount(amount)

    with localcontext() as ctx:
        ctx.prec = _PRECISION
        try:
            scaled = (value * (Decimal(10) ** decimals)).quantize(
                Decimal(1), rounding=ROUND_HALF_UP
            )
        except InvalidOperation:
            raise InvalidAmountError(f"Amount {amount} is too large") from None

    if scaled > MAX_UINT256:
        raise InvalidAmountError(f"Amount {amount} does not fit in 256 bits at {decimals} decimals")

    if scaled <= 0:
        raise InvalidAmountError(
            f"Amount {amount} is below the smallest unit for {decimals} decimals"
        )
    return int(scaled)


def format_units(value: int, decimals: int) -> str:
    """Render integer base units as a decimal string without trailing zeros.

    Example:
        format_units(1500000000, 6) -> "1500"
    """
    sign = "-" if value < 0 else ""
    value = abs(value)
    base = 10 ** decimals
    whole, frac = divmod(value, base)

    frac_text = str(frac).zfill(decimals).rstrip("0") if decimals else ""
    if frac_text:
        return f"{sign}{whole}.{frac_text}"
    return f"{sign}{whole}"
