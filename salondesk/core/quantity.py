"""Fixed-point helpers for stock quantities.

Balances are kept in packages and may be fractional (a 60 g tube of colour used
30 g at a time), so every quantity that touches the ledger goes through
``to_packages`` before it is stored or compared.
"""

from decimal import Decimal, ROUND_HALF_UP

QUANTITY_QUANT = Decimal("0.0001")
ZERO_QUANTITY = Decimal("0.0000")

PACKAGE_UNIT = "ks"


def to_packages(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(QUANTITY_QUANT, rounding=ROUND_HALF_UP)


def packages_for_usage(
    quantity: Decimal | int | float | str,
    *,
    unit: str,
    package_size: Decimal | int | float | str,
) -> Decimal:
    """Convert a recorded usage amount into packages.

    Amounts recorded in ``ks`` are already packages. Anything else is divided by
    the package size of the material.
    """
    if unit == PACKAGE_UNIT:
        return to_packages(quantity)
    size = Decimal(str(package_size))
    if size <= 0:
        raise ValueError("package_size must be positive")
    return to_packages(Decimal(str(quantity)) / size)
