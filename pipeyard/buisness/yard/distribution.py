"""
Deterministic quantity distribution across an ordered list of storage units.

Both helpers return a list aligned with the input order and always sum to the
requested total. Remainders go to the first units in iteration order so that the
same input always yields the same split.
"""

from typing import List, Optional, Sequence


def distribute_evenly(total: int, slots: int, limits: Optional[Sequence[int]] = None) -> List[int]:
    """
    Split total evenly over `slots` units, remainder to the first units.

    When limits are given (e.g. each unit's available capacity), a share above its
    limit is clamped and the overflow spills into the units that still have room,
    first to last.

    Raises:
        ValueError: If total cannot fit inside the limits
    """
    if slots <= 0:
        raise ValueError("Cannot distribute over zero units")
    if total < 0:
        raise ValueError(f"Cannot distribute a negative quantity ({total})")

    base, remainder = divmod(total, slots)
    shares = [base + (1 if index < remainder else 0) for index in range(slots)]

    if limits is None:
        return shares

    if len(limits) != slots:
        raise ValueError("limits must have one entry per unit")
    if total > sum(max(limit, 0) for limit in limits):
        raise ValueError(f"{total} does not fit in limits {list(limits)}")

    overflow = 0
    for index, limit in enumerate(limits):
        limit = max(limit, 0)
        if shares[index] > limit:
            overflow += shares[index] - limit
            shares[index] = limit

    for index, limit in enumerate(limits):
        if overflow == 0:
            break
        room = max(limit, 0) - shares[index]
        take = min(room, overflow)
        shares[index] += take
        overflow -= take

    return shares


def distribute_proportionally(total: int, weights: Sequence[int], limits: Optional[Sequence[int]] = None) -> List[int]:
    """
    Split total in proportion to weights (floor shares), remainder one by one to
    the first units that are still below their limit.

    Limits default to the weights themselves, which is what placement against an
    outstanding reservation needs: no unit receives more than it has reserved.

    Raises:
        ValueError: If total cannot fit inside the limits
    """
    if total < 0:
        raise ValueError(f"Cannot distribute a negative quantity ({total})")
    if limits is None:
        limits = weights
    if len(limits) != len(weights):
        raise ValueError("limits must have one entry per unit")

    weight_total = sum(weights)
    if total == 0:
        return [0 for _ in weights]
    if weight_total <= 0:
        raise ValueError("Cannot distribute proportionally with zero total weight")
    if total > sum(limits):
        raise ValueError(f"{total} does not fit in limits {list(limits)}")

    shares = [min(total * weight // weight_total, limit) for weight, limit in zip(weights, limits)]
    remainder = total - sum(shares)

    while remainder > 0:
        progressed = False
        for index, limit in enumerate(limits):
            if remainder == 0:
                break
            if shares[index] < limit:
                shares[index] += 1
                remainder -= 1
                progressed = True
        if not progressed:
            raise ValueError(f"{total} does not fit in limits {list(limits)}")

    return shares
