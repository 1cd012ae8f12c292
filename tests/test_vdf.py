from decimal import Decimal

from weight.vdf import vdf_delay, vdf_depth, weight_ticks


def test_depth_for_genesis_races():
    assert vdf_depth(0, 1) == 1
    assert vdf_depth(0, 2) == 2
    assert vdf_depth(4, 6) == 1


def test_genesis_rooted_delay_scales_with_height():
    assert vdf_delay(Decimal(0), 0, 1, 10, 5) == 15
    assert vdf_delay(Decimal(0), 0, 2, 10, 5) == 25


def test_weight_ticks_are_truncated():
    assert weight_ticks(Decimal('0.5'), 5) == 2
    assert weight_ticks(Decimal('0.99'), 5) == 0
    assert vdf_delay(Decimal('0.5'), 7, 9, 10, 5) == 12


def test_heavier_weight_is_never_slower():
    weights = [Decimal(i) / 20 for i in range(20)]
    delays = [vdf_delay(w, 3, 5, 1000, 500) for w in weights]
    assert delays == sorted(delays, reverse=True)


def test_no_weight_ticks():
    assert vdf_delay(Decimal('0.1'), 3, 5, 10, 0) == 10
