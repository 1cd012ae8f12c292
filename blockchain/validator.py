"""
Validator State.

Per-validator view of the chain: finalized boundary, current head and the
cumulative weight between them, plus the VDFs it already finished.
Only mutated by the event handlers running for this validator.
"""
from decimal import Decimal
from typing import Dict, Optional, Tuple

from .block import GENESIS_ID, GENESIS_HEIGHT


class Validator:
    def __init__(self, validator_id: int, power: Decimal):
        """
        Args:
            validator_id (int): Index in the validator set.
            power (Decimal): Share of the total stake, in (0,1).
        """
        self.id = validator_id
        self.power = power

        # Won't reorg to a fork not containing this block
        self.finalized_block_id = GENESIS_ID
        self.finalized_height = GENESIS_HEIGHT

        self.current_head_id = GENESIS_ID
        self.current_fork_weight = Decimal(0)

        # input block id -> (output height, weight) of VDFs already finished
        self.finished_vdf: Dict[int, Tuple[int, Decimal]] = {}

        self.latest_created_height = 0
        self.created_blocks = 0

    def finished_vdf_for(self, input_block_id: int, output_height: int) -> Optional[Decimal]:
        """Weight of a finished VDF rooted at `input_block_id` producing `output_height`."""
        entry = self.finished_vdf.get(input_block_id)
        if entry is None or entry[0] != output_height:
            return None
        return entry[1]

    def __repr__(self):
        return (f"[Validator {self.id} | Power: {float(self.power):.4f} | Head: {self.current_head_id} | "
                f"Finalized: {self.finalized_block_id}@{self.finalized_height}]")
