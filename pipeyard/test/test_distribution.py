"""
Tests for the deterministic quantity distribution helpers.
"""
import pytest
from pipeyard.buisness.yard.distribution import distribute_evenly, distribute_proportionally


def test_even_split_gives_remainder_to_first_units():
    assert distribute_evenly(10, 3) == [4, 3, 3], "Remainder should go to the first unit"
    assert distribute_evenly(9, 3) == [3, 3, 3]
    assert distribute_evenly(0, 2) == [0, 0]


def test_even_split_clamps_and_spills_in_order():
    # 120 over 100/50 available: 60/60 would overflow the second unit
    assert distribute_evenly(120, 2, limits=[100, 50]) == [70, 50], "Overflow should spill into the first unit"

    # First unit clamped, overflow spills into the next unit with room
    assert distribute_evenly(12, 3, limits=[2, 10, 10]) == [2, 6, 4]


def test_even_split_always_sums_to_total():
    for total, limits in [(7, [1, 3, 5]), (150, [100, 50]), (5, [0, 5]), (11, [4, 4, 4])]:
        shares = distribute_evenly(total, len(limits), limits=limits)
        assert sum(shares) == total, f"{shares} should sum to {total}"
        assert all(share <= limit for share, limit in zip(shares, limits)), f"{shares} exceeds {limits}"


def test_even_split_rejects_what_does_not_fit():
    with pytest.raises(ValueError):
        distribute_evenly(151, 2, limits=[100, 50])
    with pytest.raises(ValueError):
        distribute_evenly(1, 0)


def test_proportional_split_follows_weights():
    assert distribute_proportionally(90, [100]) == [90]
    assert distribute_proportionally(60, [70, 50]) == [35, 25]
    assert distribute_proportionally(3, [2, 2]) == [2, 1], "Remainder should go to the first unit"


def test_proportional_split_never_exceeds_weights_by_default():
    shares = distribute_proportionally(119, [70, 50])
    assert sum(shares) == 119
    assert shares[0] <= 70 and shares[1] <= 50


def test_proportional_split_edge_cases():
    assert distribute_proportionally(0, [0, 0]) == [0, 0], "Zero total needs no weights"
    with pytest.raises(ValueError):
        distribute_proportionally(1, [0, 0])
    with pytest.raises(ValueError):
        distribute_proportionally(11, [5, 5])
