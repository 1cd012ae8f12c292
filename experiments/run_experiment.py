"""
Main Experiment Runner.

Modes:
 1. Simulation (default)
    - Runs the event-driven consensus simulation described by a YAML config
      and prints the fairness / block time report.
    - --plot also saves the figures under results/.

 2. Win rates (--winrates)
    - Draws the weight formula directly over many heights and prints the
      observed win rate of the top validators against their power.
"""
import sys
import os
import argparse
import logging

# Allow imports from parent directory
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from experiments.config import (
    ConfigError, load_config, DEFAULT_CONFIG_PATH, RESULTS_DIR,
    DEFAULT_WINRATE_VALIDATORS, DEFAULT_WINRATE_SHARDS, DEFAULT_WINRATE_EPOCHS,
    DEFAULT_WINRATE_HEIGHTS_PER_EPOCH, DEFAULT_WINRATE_SPREAD_FACTOR, DEFAULT_WINRATE_TOP,
    DEFAULT_FLOAT_PRECISION,
)
from experiments.benchmark import run_single_simulation, run_winrates
from experiments.metrics import format_report
from experiments.plots import plot_fairness, plot_block_times
from weight.formula import FORMULAS


def run_simulation(config_path, plot=False):
    """Mode 1: Consensus simulation. Returns the process exit code."""
    try:
        config = load_config(config_path)
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    print(f">> Mode: Consensus Simulation ({config.validators_count} validators, "
          f"stop height {config.stop_height})")

    res = run_single_simulation(config)
    sim = res['simulator']

    print()
    for line in format_report(sim.store, sim.finalized_index, sim.powers):
        print(line)

    if plot:
        print("Generating plots...")
        plot_fairness(sim.store, sim.finalized_index, sim.powers)
        plot_block_times(sim.store, sim.finalized_index)
        print(f"Check {RESULTS_DIR} for plots.")

    if res['stalled']:
        print("Warning: simulation stalled before draining its event queue.")

    if res['divergence'] is not None:
        print(f"FINALIZATION DIVERGENCE: {res['divergence']}")
        return 1
    return 0


def run_winrate_study(args):
    """Mode 2: Weight formula win rates."""
    print(">> Mode: Weight Formula Win Rates")
    print(f"Validators: {args.validators}")
    print(f"Shards: {args.shards}")
    print(f"Epochs: {args.epochs}")
    print(f"Blocks per epoch: {args.heights}")
    print(f"Float precision: {args.precision}")
    print(f"Stake spread factor: {args.spread}")
    print(f"Formula: {args.formula}")
    print()

    res = run_winrates(validators=args.validators, shards=args.shards, epochs=args.epochs,
                       blocks_per_epoch=args.heights, spread_factor=args.spread,
                       precision=args.precision, formula=args.formula, workers=args.workers)

    for line in res['result'].format_report(res['powers'], top=args.top):
        print(line)
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(description="VDF Stake-Weight Consensus Simulation Runner")

    parser.add_argument('-c', '--config', default=DEFAULT_CONFIG_PATH,
                        help="YAML simulation config (default: config.yaml at the repo root).")
    parser.add_argument('-p', '--plot', action='store_true',
                        help="Save fairness and block time plots after a simulation.")
    parser.add_argument('--log-level', default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help="Logging verbosity.")

    # Win-rate harness
    parser.add_argument('-w', '--winrates', action='store_true',
                        help="Run the weight formula win-rate study instead of the simulation.")
    parser.add_argument('--validators', type=int, default=DEFAULT_WINRATE_VALIDATORS)
    parser.add_argument('--shards', type=int, default=DEFAULT_WINRATE_SHARDS)
    parser.add_argument('--epochs', type=int, default=DEFAULT_WINRATE_EPOCHS)
    parser.add_argument('--heights', type=int, default=DEFAULT_WINRATE_HEIGHTS_PER_EPOCH,
                        help="Heights per epoch.")
    parser.add_argument('--spread', type=int, default=DEFAULT_WINRATE_SPREAD_FACTOR,
                        help="Stake spread factor.")
    parser.add_argument('--precision', type=int, default=DEFAULT_FLOAT_PRECISION,
                        help="Float precision in bits.")
    parser.add_argument('--formula', default='exp', choices=sorted(FORMULAS))
    parser.add_argument('--workers', type=int, default=os.cpu_count() or 1,
                        help="Worker processes for the win-rate study.")
    parser.add_argument('--top', type=int, default=DEFAULT_WINRATE_TOP,
                        help="Validators shown in the win-rate report.")

    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level),
                        format='%(levelname)s %(name)s: %(message)s')

    if args.winrates:
        return run_winrate_study(args)
    return run_simulation(args.config, plot=args.plot)


if __name__ == "__main__":
    sys.exit(main())
