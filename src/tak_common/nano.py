"""Integer arithmetic utilities for nano-denominated amounts.

All prices and amounts are int nano-units (1 TON = 1_000_000_000 nano).
No float, no Decimal.
"""

from src.tak_common.errors import InvalidAmountError

NANO_PER_TON = 1_000_000_000

# Amount columns are BIGINT
MAX_NANO = 2**63 - 1


def validate_positive_nano(value: object, field: str) -> int:
    """Return value if it is an int in 1..MAX_NANO, else raise InvalidAmountError.

    bool is rejected even though it subclasses int.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmountError(field, value)
    if not 0 < value <= MAX_NANO:
        raise InvalidAmountError(field, value)
    return value


def nano_to_display(nano: int) -> str:
    """Convert nano to display string: 1500000000 -> '1.5 TON', 2000000000 -> '2 TON'."""
    sign = "-" if nano < 0 else ""
    whole, frac = divmod(abs(nano), NANO_PER_TON)
    if frac == 0:
        return f"{sign}{whole:,} TON"
    frac_str = f"{frac:09d}".rstrip("0")
    return f"{sign}{whole:,}.{frac_str} TON"
