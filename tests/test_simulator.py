from decimal import Decimal

import pytest

from blockchain.events import BlockReceived, VdfFinished
from blockchain.simulator import Simulator
from experiments.config import SimulationConfig
from experiments.metrics import fairness, win_rates

from conftest import drain


def finalized_heights(sim):
    return sim.finalized_index.heights()


def test_two_validators_finalize_every_height(make_config):
    config = make_config(finalization_weight=0, stop_height=30)
    sim = Simulator(config)

    assert sim.run() is True
    assert sim.divergence is None
    assert not sim.stalled
    assert len(sim.scheduler) == 0

    heads = {v.current_head_id for v in sim.validators}
    assert len(heads) == 1

    heights = finalized_heights(sim)
    assert len(heights) >= 30
    assert heights == list(range(1, len(heights) + 1))


def test_runs_are_reproducible(make_config):
    config = make_config(validators_count=4, stake_spread_factor=2, latency_ticks=3,
                         finalization_weight=1, stop_height=40)
    first = Simulator(config, record_events=True)
    second = Simulator(config, record_events=True)
    first.run()
    second.run()

    assert first.event_log == second.event_log
    assert first.steps == second.steps
    assert first.finalized_index.items() == second.finalized_index.items()

    def snapshot(sim):
        return [(b.id, b.height, b.previous_block_id, b.validator_id, b.weight, b.time)
                for b in sim.store.get_history()]
    assert snapshot(first) == snapshot(second)


def test_seed_changes_the_run(make_config):
    config = make_config(finalization_weight=0, stop_height=20)
    a = Simulator(config)
    b = Simulator(config.replace(seed="another seed"))
    a.run()
    b.run()

    weights_a = [block.weight for block in a.store.get_history()]
    weights_b = [block.weight for block in b.store.get_history()]
    assert weights_a != weights_b


def test_no_divergence_without_latency(make_config):
    config = make_config(validators_count=8, stake_spread_factor=2, vdf_block_ticks=100,
                         vdf_max_weight_ticks=50, vdf_apply_retry_ticks=5,
                         finalization_weight=1, stop_height=60)
    sim = Simulator(config)

    assert sim.run() is True
    assert sim.divergence is None
    assert len(sim.finalized_index) > 0

    # Every validator saw the same events, so all of them agree
    finalized = {(v.finalized_block_id, v.current_head_id) for v in sim.validators}
    assert len(finalized) == 1


def test_finality_and_fork_weight_invariants(make_config):
    config = make_config(validators_count=4, stake_spread_factor=1, latency_ticks=2,
                         finalization_weight=1.5, stop_height=40)
    sim = Simulator(config)
    ctx = sim.consensus.ctx
    last_finalized = {v.id: 0 for v in sim.validators}

    while sim.step():
        if sim.divergence is not None:
            break

        for v in sim.validators:
            assert v.finalized_height >= last_finalized[v.id]
            last_finalized[v.id] = v.finalized_height
            assert v.current_fork_weight >= 0

            if v.current_head_id == 0:
                continue

            result = sim.store.compute_fork_weight(v.current_head_id, v.finalized_block_id,
                                                   v.finalized_height, ctx)
            assert result is not None
            assert result[0] == v.current_fork_weight

            above = [float(b.weight) for b in sim.store.ancestors(v.current_head_id)
                     if b.height > v.finalized_height]
            assert float(v.current_fork_weight) == pytest.approx(sum(above))


def test_block_graph_is_acyclic(make_config):
    sim = Simulator(make_config(validators_count=3, latency_ticks=4, finalization_weight=1))
    sim.run()

    assert len(sim.store) > 0
    for block in sim.store.get_history():
        assert block.previous_block_id < block.id
        assert len(list(sim.store.ancestors(block.id))) == block.height


def test_no_validator_creates_two_blocks_at_one_height(make_config):
    sim = Simulator(make_config(validators_count=4, latency_ticks=5, finalization_weight=1))
    sim.run()

    created = [(b.validator_id, b.height) for b in sim.store.get_history()]
    assert len(created) == len(set(created))
    for v in sim.validators:
        assert v.created_blocks == sum(1 for vid, _ in created if vid == v.id)


def test_equal_powers_both_win(make_config):
    sim = Simulator(make_config(finalization_weight=0, stop_height=200))
    sim.run()

    rates = win_rates(sim.store, sim.finalized_index, 2)
    assert len(sim.finalized_index) >= 200
    assert 0.1 < rates[0] < 0.9
    assert 0.1 < rates[1] < 0.9


def test_win_rates_converge_to_powers():
    config = SimulationConfig(validators_count=4, stake_spread_factor=1, latency_ticks=0,
                              finalization_weight=1, stop_height=2000)
    sim = Simulator(config)
    assert sim.run() is True

    rates = win_rates(sim.store, sim.finalized_index, len(sim.powers))
    deviations = [abs(rate - float(power)) for rate, power in zip(rates, sim.powers)]
    assert len(sim.finalized_index) > 1900
    assert max(deviations) < 0.025
    assert fairness(sim.store, sim.finalized_index, sim.powers) < 0.02


def test_dominant_stake_wins_most_heights(make_config):
    sim = Simulator(make_config(validators_count=3, finalization_weight=0, stop_height=100))
    # Override the drawn powers before any VDF is started
    sim.powers = [Decimal('0.98'), Decimal('0.01'), Decimal('0.01')]
    for validator, power in zip(sim.validators, sim.powers):
        validator.power = power
    sim.run()

    rates = win_rates(sim.store, sim.finalized_index, 3)
    assert rates[0] > 0.8
    assert fairness(sim.store, sim.finalized_index, sim.powers) < 0.15


def test_step_stop(make_config):
    sim = Simulator(make_config(step_stop=5))
    sim.run()

    assert sim.steps == 5
    assert len(sim.scheduler) > 0


def test_step_stop_zero_processes_nothing(make_config):
    sim = Simulator(make_config(step_stop=0))
    sim.run()
    assert sim.steps == 0


def test_divergence_stops_the_run(make_config):
    sim = Simulator(make_config(finalization_weight=0))
    # Another block was already finalized at height 1
    sim.finalized_index.record(1, 999, 0)

    assert sim.run() is False
    assert sim.divergence is not None
    assert sim.divergence.height == 1
    assert sim.divergence.finalized_id == 999
    assert sim.step() is False
    assert sim.get_results()['divergence'] is sim.divergence


def test_stall_is_detected(make_config):
    sim = Simulator(make_config())
    drain(sim.scheduler)

    block = sim.store.add_block(1, 0, 1, Decimal('0.5'), 0)
    sim.validators[0].current_head_id = block.id
    # Nobody will ever build on block 1, the VDF rooted on it retries forever
    sim.scheduler.push(5, 0, VdfFinished(block.id, 3, Decimal('0.2')))

    assert sim.run() is True
    assert sim.stalled
    assert sim.steps == 2
    assert len(sim.scheduler) == 1


def test_pending_block_prevents_stall(make_config):
    sim = Simulator(make_config(stop_height=1))
    drain(sim.scheduler)

    block = sim.store.add_block(1, 0, 1, Decimal('0.5'), 0)
    child = sim.store.add_block(2, block.id, 1, Decimal('0.5'), 0)
    sim.validators[0].current_head_id = block.id
    sim.validators[0].current_fork_weight = Decimal('0.5')
    sim.scheduler.push(5, 0, VdfFinished(block.id, 3, Decimal('0.2')))
    sim.scheduler.push(20, 0, BlockReceived(child.id))

    sim.run()

    assert not sim.stalled
    assert len(sim.scheduler) == 0
    # The retried VDF was applied once its head got a child
    assert sim.store.get(3).previous_block_id == child.id
    assert sim.consensus.retries == 5
