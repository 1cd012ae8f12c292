"""
Block Structure.

A block contains:
- ID (assigned by the block store, never reused)
- Height
- Previous Block ID (0 is the genesis sentinel, never stored as a block)
- Validator ID (who created it)
- Weight (stake-biased score in [0,1))
- Time (simulation tick of creation)
"""
from decimal import Decimal

GENESIS_ID = 0
GENESIS_HEIGHT = 0


class Block:
    __slots__ = ('id', 'height', 'previous_block_id', 'validator_id', 'weight', 'time')

    def __init__(self, block_id: int, height: int, previous_block_id: int, validator_id: int,
                 weight: Decimal, time: int):
        self.id = block_id
        self.height = height
        self.previous_block_id = previous_block_id
        self.validator_id = validator_id
        self.weight = weight
        # Logical simulation tick, not wall-clock time
        self.time = time

    def __repr__(self):
        return (f"[Block {self.id} | H: {self.height} | Prev: {self.previous_block_id} | "
                f"Val: {self.validator_id} | W: {float(self.weight):.6f} | T: {self.time}]")
