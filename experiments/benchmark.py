"""
Benchmark Runner Module.

Contains the single-run entry points used by the CLI and the plots:
the event-driven consensus simulation and the win-rate harness.
"""
import logging

from blockchain.simulator import Simulator
from weight.formula import powers
from weight.winrates import WinRateHarness
from experiments.config import (
    DEFAULT_FLOAT_PRECISION, DEFAULT_WINRATE_VALIDATORS, DEFAULT_WINRATE_SHARDS,
    DEFAULT_WINRATE_EPOCHS, DEFAULT_WINRATE_HEIGHTS_PER_EPOCH, DEFAULT_WINRATE_SPREAD_FACTOR,
)
from experiments.metrics import fairness, block_times

logger = logging.getLogger(__name__)


def run_single_simulation(config, record_events=False):
    """
    Runs one consensus simulation to completion.

    Returns:
       - simulator: the driver, with its final state
       - fairness: mean |win rate - power| (None if nothing was finalized)
       - block_times: inter-finalization time summaries
       - divergence: FinalizationDivergence or None
       - stalled: True if the run ended with unusable VDF results left
    """
    sim = Simulator(config, record_events=record_events)
    sim.run()

    return {
        'simulator': sim,
        'fairness': fairness(sim.store, sim.finalized_index, sim.powers),
        'block_times': block_times(sim.store, sim.finalized_index),
        'divergence': sim.divergence,
        'stalled': sim.stalled,
    }


def run_winrates(validators=DEFAULT_WINRATE_VALIDATORS, shards=DEFAULT_WINRATE_SHARDS,
                 epochs=DEFAULT_WINRATE_EPOCHS, blocks_per_epoch=DEFAULT_WINRATE_HEIGHTS_PER_EPOCH,
                 spread_factor=DEFAULT_WINRATE_SPREAD_FACTOR, precision=DEFAULT_FLOAT_PRECISION,
                 formula='exp', workers=1):
    """
    Estimates long-run win rates of the weight formula.

    Returns:
       - powers: validator powers, highest first
       - result: merged WinRateResult
    """
    validator_powers = powers(validators, spread_factor, precision)
    harness = WinRateHarness(validator_powers, shards=shards, epochs=epochs,
                             blocks_per_epoch=blocks_per_epoch, precision=precision, formula=formula)
    logger.info("Simulating %d validators over %d epochs x %d heights x %d shards",
                validators, epochs, blocks_per_epoch, shards)
    result = harness.simulate_full(workers=workers)
    return {'powers': validator_powers, 'result': result}
