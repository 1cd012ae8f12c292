from decimal import Decimal

import pytest

from weight.winrates import WinRateHarness, WinRateResult, epoch_seed

POWERS = [Decimal('0.5'), Decimal('0.3'), Decimal('0.2')]


@pytest.fixture
def harness():
    return WinRateHarness(POWERS, shards=2, epochs=1, blocks_per_epoch=10)


def fields(result):
    return (result.rounds, result.wins, result.min_win_weight, result.max_win_weight,
            result.sum_win_weight, result.max_win_across_shards)


def test_simulate_height_counts_one_win_per_shard(harness):
    result = harness.simulate_height(epoch_seed(0), 5)

    assert result.rounds == 2
    assert sum(result.wins) == 2
    assert 1 <= result.max_win_across_shards <= 2
    assert Decimal(0) <= result.min_win_weight <= result.max_win_weight < Decimal(1)


def test_merge_identity(harness):
    result = harness.simulate_height(epoch_seed(0), 1)
    empty = WinRateResult(len(POWERS))

    assert fields(WinRateResult.merge(empty, result)) == fields(result)
    assert fields(WinRateResult.merge(result, empty)) == fields(result)


def test_merge_is_commutative(harness):
    a = harness.simulate_height(epoch_seed(0), 1)
    b = harness.simulate_height(epoch_seed(0), 2)

    assert fields(WinRateResult.merge(a, b)) == fields(WinRateResult.merge(b, a))


def test_merge_is_associative(harness):
    a, b, c = (harness.simulate_height(epoch_seed(0), h) for h in range(3))

    left = WinRateResult.merge(WinRateResult.merge(a, b), c)
    right = WinRateResult.merge(a, WinRateResult.merge(b, c))

    assert fields(left) == fields(right)


def test_merge_rejects_different_validator_sets():
    with pytest.raises(ValueError):
        WinRateResult.merge(WinRateResult(2), WinRateResult(3))


def test_epoch_seeds_differ():
    assert epoch_seed(0) != epoch_seed(1)
    assert epoch_seed(3) == epoch_seed(3)


def test_simulate_epoch_reports_progress(harness):
    calls = []
    result = harness.simulate_epoch(0, progress=lambda: calls.append(1))

    assert len(calls) == 10
    assert result.rounds == 20


def test_win_rates_match_powers():
    harness = WinRateHarness(POWERS, blocks_per_epoch=3000)
    result = harness.simulate_full()

    assert result.rounds == 3000
    for rate, power in zip(result.win_rates(), POWERS):
        assert rate == pytest.approx(float(power), abs=0.04)


def test_log_formula_elects_by_power():
    harness = WinRateHarness(POWERS, blocks_per_epoch=3000, formula='log')
    result = harness.simulate_full()

    for rate, power in zip(result.win_rates(), POWERS):
        assert rate == pytest.approx(float(power), abs=0.04)


def test_parallel_matches_serial():
    harness = WinRateHarness(POWERS, shards=2, epochs=3, blocks_per_epoch=20)

    serial = harness.simulate_full(workers=1)
    parallel = harness.simulate_full(workers=2)

    assert fields(parallel) == fields(serial)
    assert serial.rounds == 3 * 20 * 2


def test_format_report(harness):
    result = harness.simulate_full()
    lines = result.format_report(POWERS, top=5)

    assert lines[0] == "Results (top 3 validators) :"
    assert "blocks: 20" in lines
    assert any(line.startswith("avr winner score : ") for line in lines)


def test_empty_result_rates():
    assert WinRateResult(2).win_rates() == [0.0, 0.0]


def test_winner_scores_are_summed_exactly():
    a = WinRateResult(1)
    b = WinRateResult(1)
    c = WinRateResult(1)
    a.sum_win_weight = Decimal('0.1234567890123456')
    b.sum_win_weight = Decimal('1E-30')
    c.sum_win_weight = Decimal('0.9999999999999999')

    left = WinRateResult.merge(WinRateResult.merge(a, b), c)
    right = WinRateResult.merge(a, WinRateResult.merge(b, c))

    assert left.sum_win_weight == right.sum_win_weight
    assert left.sum_win_weight == Decimal('1.123456789012345500000000000001')


def test_tasks_split_single_epoch_across_workers():
    harness = WinRateHarness(POWERS, epochs=1, blocks_per_epoch=10)

    assert harness.tasks(1) == [(0, 0, 10)]
    assert harness.tasks(4) == [(0, 0, 3), (0, 3, 6), (0, 6, 9), (0, 9, 10)]
    assert WinRateHarness(POWERS, epochs=3, blocks_per_epoch=10).tasks(2) == [
        (0, 0, 10), (1, 0, 10), (2, 0, 10),
    ]


def test_parallel_single_epoch_matches_serial():
    harness = WinRateHarness(POWERS, epochs=1, blocks_per_epoch=30)

    serial = harness.simulate_full(workers=1)
    parallel = harness.simulate_full(workers=2)

    assert fields(parallel) == fields(serial)
    assert parallel.rounds == 30
