"""
Simulation Error Types.

FinalizationDivergence is the only fatal condition of a run: two validators
finalized different blocks at the same height.
"""


class SimulationError(Exception):
    """Base class of engine errors."""


class InvalidBlockError(SimulationError):
    """A block violates the store invariants (parent link or height)."""


class FinalizationDivergence(SimulationError):
    def __init__(self, height: int, finalized_id: int, conflicting_id: int, validator_id: int):
        self.height = height
        self.finalized_id = finalized_id
        self.conflicting_id = conflicting_id
        self.validator_id = validator_id
        super().__init__(
            f"Finalization divergence at height {height}: block {finalized_id} already finalized, "
            f"validator {validator_id} finalized block {conflicting_id}"
        )
