"""
Domain service: Lot allocation across targets.

Splits the total lots of a position across T1-T4 by percentage using the
largest-remainder method, so the allocations always sum to the total.
"""

from typing import Sequence

DEFAULT_PERCENTAGES = (40, 30, 20, 10)


def allocate_lots(total_lots: int, percentages: Sequence[int] = DEFAULT_PERCENTAGES) -> list[int]:
    """Allocate whole lots by percentage.

    Leftover lots after flooring go to the largest fractional remainders;
    on equal remainders the later target wins.

    Args:
        total_lots: Lots to distribute.
        percentages: Share per target, in target order. Must sum to 100.

    Returns:
        Lots per target, same length as ``percentages``.
    """
    shares = [p * total_lots for p in percentages]
    floored = [share // 100 for share in shares]
    leftover = total_lots - sum(floored)

    order = sorted(
        range(len(percentages)),
        key=lambda i: (shares[i] % 100, i),
        reverse=True,
    )
    for i in order[:max(leftover, 0)]:
        floored[i] += 1
    return floored


def allocate_quantity(
    quantity: int, lot_size: int, percentages: Sequence[int] = DEFAULT_PERCENTAGES
) -> dict[int, int]:
    """Return units to close per target index (1-based)."""
    lots = allocate_lots(quantity // lot_size, percentages)
    return {index: count * lot_size for index, count in enumerate(lots, start=1)}
