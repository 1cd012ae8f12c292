"""
Win-Rate Harness.

Draws the weight formula for every validator at many heights (and shards) and
counts who has the highest score, to check the long-run win rate of each
validator against its stake power.

Heights are independent: the run is cut into (epoch, height range) tasks
that run in worker processes, and partial results are combined with
`WinRateResult.merge`, which is commutative and associative.
"""
import hashlib
import math
from concurrent.futures import ProcessPoolExecutor
from decimal import Context, Decimal, MAX_EMAX, MAX_PREC, MIN_EMIN
from functools import reduce
from typing import Callable, List, Optional, Sequence, Tuple

from .formula import DEFAULT_PRECISION, get_formula, precision_context

# Winner scores are summed without rounding so merge order never changes the total
EXACT = Context(prec=MAX_PREC, Emax=MAX_EMAX, Emin=MIN_EMIN)


class WinRateResult:
    def __init__(self, validators: int, precision: int = DEFAULT_PRECISION):
        self.precision = precision
        self.rounds = 0
        self.wins: List[int] = [0] * validators
        self.min_win_weight = Decimal('Infinity')
        self.max_win_weight = Decimal('-Infinity')
        self.sum_win_weight = Decimal(0)
        # Max number of shards the same validator won at one height
        self.max_win_across_shards = 0

    @staticmethod
    def merge(a: 'WinRateResult', b: 'WinRateResult') -> 'WinRateResult':
        """Combines two results into a new one."""
        if len(a.wins) != len(b.wins):
            raise ValueError("Cannot merge results over different validator sets")
        merged = WinRateResult(len(a.wins), a.precision)
        merged.rounds = a.rounds + b.rounds
        merged.wins = [wa + wb for wa, wb in zip(a.wins, b.wins)]
        merged.min_win_weight = min(a.min_win_weight, b.min_win_weight)
        merged.max_win_weight = max(a.max_win_weight, b.max_win_weight)
        merged.sum_win_weight = EXACT.add(a.sum_win_weight, b.sum_win_weight)
        merged.max_win_across_shards = max(a.max_win_across_shards, b.max_win_across_shards)
        return merged

    def win_rates(self) -> List[float]:
        if self.rounds == 0:
            return [0.0] * len(self.wins)
        return [w / self.rounds for w in self.wins]

    def format_report(self, powers: Sequence, top: int = 10) -> List[str]:
        """Human readable lines for the `top` first validators."""
        top = min(top, len(self.wins))
        rates = self.win_rates()
        lines = [f"Results (top {top} validators) :", "power         win rate       wins    diff"]

        for i in range(top):
            power = float(powers[i])
            lines.append(f"{power:0.8f}    {rates[i]:0.8f} {self.wins[i]:>8}    {rates[i] - power:+0.8f}")

        lines.append("")
        lines.append(f"blocks: {self.rounds}")
        lines.append(f"max multi shard win : {self.max_win_across_shards}")
        if self.rounds:
            average = precision_context(self.precision).divide(self.sum_win_weight, self.rounds)
            lines.append(f"min winner score : {float(self.min_win_weight):0.8f}")
            lines.append(f"max winner score : {float(self.max_win_weight):0.8f}")
            lines.append(f"avr winner score : {float(average):0.8f}")
        return lines


def epoch_seed(epoch: int) -> bytes:
    hasher = hashlib.sha3_256()
    hasher.update(b"seed")
    hasher.update(int(epoch).to_bytes(8, 'big'))
    return hasher.digest()


class WinRateHarness:
    def __init__(self, powers: Sequence[Decimal], shards: int = 1, epochs: int = 1,
                 blocks_per_epoch: int = 1000, precision: int = DEFAULT_PRECISION,
                 formula: str = 'exp'):
        """
        Args:
            powers: Validator powers (should sum up to 1).
            shards (int): Amount of shards drawn at each height.
            epochs (int): Amount of epochs.
            blocks_per_epoch (int): Heights per epoch.
            precision (int): Float precision in bits.
            formula (str): Name of the weight formula ('exp' or 'log').
        """
        self.powers = list(powers)
        self.shards = shards
        self.epochs = epochs
        self.blocks_per_epoch = blocks_per_epoch
        self.precision = precision
        self.formula_name = formula
        self.formula = get_formula(formula)

    @property
    def validators(self) -> int:
        return len(self.powers)

    def simulate_height(self, seed: bytes, height: int) -> WinRateResult:
        """Simulates the election on all shards for the same height."""
        result = WinRateResult(self.validators, self.precision)
        shards_wins = [0] * self.validators

        for shard in range(self.shards):
            winner = 0
            winner_weight = Decimal('-Infinity')

            for validator, power in enumerate(self.powers):
                weight = self.formula(seed, power, height, shard, validator, self.precision)
                if weight > winner_weight:
                    winner = validator
                    winner_weight = weight

            result.wins[winner] += 1
            shards_wins[winner] += 1
            result.min_win_weight = min(result.min_win_weight, winner_weight)
            result.max_win_weight = max(result.max_win_weight, winner_weight)
            result.sum_win_weight = EXACT.add(result.sum_win_weight, winner_weight)

        result.max_win_across_shards = max(shards_wins)
        result.rounds = self.shards
        return result

    def simulate_range(self, epoch: int, start: int, stop: int,
                       progress: Optional[Callable[[], None]] = None) -> WinRateResult:
        """Simulates heights [start, stop) of one epoch."""
        seed = epoch_seed(epoch)
        result = WinRateResult(self.validators, self.precision)
        for height in range(start, stop):
            result = WinRateResult.merge(result, self.simulate_height(seed, height))
            if progress:
                progress()
        return result

    def simulate_epoch(self, epoch: int, progress: Optional[Callable[[], None]] = None) -> WinRateResult:
        """Simulates all heights of one epoch."""
        return self.simulate_range(epoch, 0, self.blocks_per_epoch, progress)

    def tasks(self, workers: int = 1) -> List[Tuple[int, int, int]]:
        """
        Splits the run into (epoch, start, stop) height ranges.

        Epochs are cut into enough chunks to give every worker something to
        do, even when there are fewer epochs than workers.
        """
        chunks_per_epoch = max(1, math.ceil(workers / max(1, self.epochs)))
        size = max(1, math.ceil(self.blocks_per_epoch / chunks_per_epoch))
        return [(epoch, start, min(start + size, self.blocks_per_epoch))
                for epoch in range(self.epochs)
                for start in range(0, self.blocks_per_epoch, size)]

    def _simulate_task(self, task: Tuple[int, int, int]) -> WinRateResult:
        return self.simulate_range(*task)

    def simulate_full(self, workers: int = 1) -> WinRateResult:
        """
        Simulates every epoch.

        Args:
            workers (int): Worker processes. 1 runs everything in this process.
        """
        empty = WinRateResult(self.validators, self.precision)
        tasks = self.tasks(workers)
        if workers <= 1 or len(tasks) <= 1:
            partials = [self._simulate_task(t) for t in tasks]
        else:
            with ProcessPoolExecutor(max_workers=workers) as pool:
                partials = list(pool.map(self._simulate_task, tasks))
        return reduce(WinRateResult.merge, partials, empty)
