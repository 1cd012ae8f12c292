"""
Run Report Metrics.

- Fairness: mean absolute difference between each validator's share of
  finalized blocks and its stake power.
- Block time: creation-time difference between consecutive finalized heights,
  overall and split by parity (two VDF races run one height apart, so the
  timing alternates between even->odd and odd->even transitions).
"""
from typing import Dict, List, Optional

import numpy as np


def win_counts(store, finalized_index, validators_count: int) -> np.ndarray:
    """Number of finalized blocks created by each validator."""
    wins = np.zeros(validators_count, dtype=np.int64)
    for _height, block_id in finalized_index.items():
        wins[store.get(block_id).validator_id] += 1
    return wins


def win_rates(store, finalized_index, validators_count: int) -> np.ndarray:
    wins = win_counts(store, finalized_index, validators_count)
    total = wins.sum()
    if total == 0:
        return np.zeros(validators_count)
    return wins / total


def fairness(store, finalized_index, powers) -> Optional[float]:
    """Mean |win rate - power| over validators, None if nothing was finalized."""
    if len(finalized_index) == 0:
        return None
    rates = win_rates(store, finalized_index, len(powers))
    power_arr = np.array([float(p) for p in powers])
    return float(np.mean(np.abs(rates - power_arr)))


def _summary(diffs: List[int]) -> Dict[str, Optional[float]]:
    if not diffs:
        return {'count': 0, 'average': None, 'min': None, 'max': None}
    arr = np.array(diffs, dtype=np.int64)
    return {
        'count': int(arr.size),
        'average': float(arr.mean()),
        'min': int(arr.min()),
        'max': int(arr.max()),
    }


def block_time_diffs(store, finalized_index) -> Dict[str, List[int]]:
    """
    Creation-time differences between consecutive finalized heights.

    Returns:
        dict with 'all', 'even_odd' and 'odd_even' lists of ticks.
        A transition is even->odd when it starts from an even height.
    """
    diffs: Dict[str, List[int]] = {'all': [], 'even_odd': [], 'odd_even': []}
    items = finalized_index.items()

    for (height, block_id), (_next_height, next_block_id) in zip(items, items[1:]):
        diff = store.get(next_block_id).time - store.get(block_id).time
        diffs['all'].append(diff)
        diffs['even_odd' if height % 2 == 0 else 'odd_even'].append(diff)
    return diffs


def block_times(store, finalized_index) -> Dict[str, Dict[str, Optional[float]]]:
    """Count, average, min and max of each list of `block_time_diffs`."""
    return {key: _summary(diffs) for key, diffs in block_time_diffs(store, finalized_index).items()}


def _fmt_avg(value) -> str:
    return "n/a" if value is None else f"{value:.1f}"


def _fmt_int(value) -> str:
    return "n/a" if value is None else str(value)


def format_report(store, finalized_index, powers, top: int = 10) -> List[str]:
    """Human readable report lines."""
    lines = []
    rates = win_rates(store, finalized_index, len(powers))
    wins = win_counts(store, finalized_index, len(powers))

    lines.append(f"Results (top {min(top, len(powers))} validators) :")
    lines.append("power         win rate       wins    diff")
    for i in range(min(top, len(powers))):
        power = float(powers[i])
        lines.append(f"{power:0.8f}    {rates[i]:0.8f} {wins[i]:>8}    {rates[i] - power:+0.8f}")
    lines.append("")

    fair = fairness(store, finalized_index, powers)
    lines.append(f"Blocks : {len(store)}")
    lines.append(f"Finalized heights : {len(finalized_index)}")
    lines.append(f"Fairness : {'n/a' if fair is None else format(fair, '.9f')}")

    times = block_times(store, finalized_index)
    labels = (('all', ''), ('even_odd', 'even-odd '), ('odd_even', 'odd-even '))
    for key, label in labels:
        summary = times[key]
        lines.append(f"Average {label}block time : {_fmt_avg(summary['average'])}")
        lines.append(f"Min {label}block time : {_fmt_int(summary['min'])}")
        lines.append(f"Max {label}block time : {_fmt_int(summary['max'])}")
    return lines
