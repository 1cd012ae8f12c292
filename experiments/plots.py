"""
Plotting Utilities.

Figures of a simulation run:
- Fairness: stake power vs share of finalized blocks per validator.
- Block times: inter-finalization time distribution split by height parity.
"""
import os

import matplotlib.pyplot as plt
import numpy as np

from experiments.config import RESULTS_DIR
from experiments.metrics import block_time_diffs, win_rates


def plot_fairness(store, finalized_index, powers, save_path=os.path.join(RESULTS_DIR, "fairness.png")):
    """
    Scatter of power vs observed win rate. Points on the diagonal are fair.
    """
    power_arr = np.array([float(p) for p in powers])
    rates = win_rates(store, finalized_index, len(powers))

    plt.figure(figsize=(8, 8))
    plt.scatter(power_arr, rates, color='blue', alpha=0.7, label='Validators')

    upper = max(power_arr.max(), rates.max() if rates.size else 0) * 1.05
    plt.plot([0, upper], [0, upper], color='red', linestyle='--', label='Fair (win rate = power)')

    plt.xlim(0, upper)
    plt.ylim(0, upper)
    plt.title("Stake Power vs Finalized Win Rate")
    plt.xlabel("Stake Power")
    plt.ylabel("Share of Finalized Blocks")
    plt.legend(loc='upper left')
    plt.grid(True, alpha=0.3)

    os.makedirs(os.path.dirname(save_path), exist_ok=True)
    plt.savefig(save_path)
    print(f"Plot saved to {save_path}")
    plt.close()


def plot_block_times(store, finalized_index, save_path=os.path.join(RESULTS_DIR, "block_times.png")):
    """
    Histogram of the time between consecutive finalized heights,
    even->odd and odd->even transitions stacked separately.
    """
    diffs = block_time_diffs(store, finalized_index)
    even_odd, odd_even = diffs['even_odd'], diffs['odd_even']

    if not even_odd and not odd_even:
        print("Not enough finalized blocks to plot block times.")
        return

    plt.figure(figsize=(10, 6))
    plt.hist([even_odd, odd_even], bins=40, stacked=True,
             color=['green', 'orange'], label=['Even -> Odd', 'Odd -> Even'])

    average = np.mean(diffs['all'])
    plt.axvline(x=average, color='black', linestyle=':', label=f'Average ({average:.1f})')

    plt.title("Time Between Consecutive Finalized Blocks")
    plt.xlabel("Ticks")
    plt.ylabel("Count")
    plt.legend()
    plt.grid(True, alpha=0.3)

    os.makedirs(os.path.dirname(save_path), exist_ok=True)
    plt.savefig(save_path)
    print(f"Plot saved to {save_path}")
    plt.close()
