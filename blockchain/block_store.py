"""
Append-only Block Store.

Blocks are only referenced by integer id. Ids grow monotonically and a block
is always inserted after its parent, so "parent id < block id" holds for every
block and the ancestor chain is acyclic by construction.

Also holds the global finalized-block index used to detect divergence.
"""
from decimal import Context, Decimal
from typing import Dict, Iterator, List, Optional, Tuple

from .block import Block, GENESIS_ID, GENESIS_HEIGHT
from .errors import FinalizationDivergence, InvalidBlockError


class BlockStore:
    def __init__(self):
        self.blocks: Dict[int, Block] = {}
        # 0 is genesis and special case.
        self.next_free_block_id = 1

    def __len__(self):
        return len(self.blocks)

    def __contains__(self, block_id: int):
        return block_id in self.blocks

    def get(self, block_id: int) -> Block:
        return self.blocks[block_id]

    def height_of(self, block_id: int) -> int:
        if block_id == GENESIS_ID:
            return GENESIS_HEIGHT
        return self.blocks[block_id].height

    def add_block(self, height: int, previous_block_id: int, validator_id: int,
                  weight: Decimal, time: int) -> Block:
        """
        Creates and stores a new block under the next free id.

        Raises:
            InvalidBlockError: unknown parent or height not parent height + 1.
        """
        block_id = self.next_free_block_id

        if previous_block_id != GENESIS_ID and previous_block_id not in self.blocks:
            raise InvalidBlockError(f"Unknown parent block {previous_block_id}")
        if previous_block_id >= block_id:
            raise InvalidBlockError(f"Parent id {previous_block_id} must be lower than block id {block_id}")

        expected_height = self.height_of(previous_block_id) + 1
        if height != expected_height:
            raise InvalidBlockError(
                f"Block height {height} doesn't follow parent {previous_block_id} (expected {expected_height})"
            )

        block = Block(block_id, height, previous_block_id, validator_id, weight, time)
        self.blocks[block_id] = block
        self.next_free_block_id += 1
        return block

    def ancestors(self, block_id: int) -> Iterator[Block]:
        """Yields the block and its ancestors down to (excluding) genesis."""
        while block_id != GENESIS_ID:
            block = self.blocks[block_id]
            yield block
            block_id = block.previous_block_id

    def compute_fork_weight(self, head_id: int, finalized_id: int, finalized_height: int,
                            ctx: Context) -> Optional[Tuple[Decimal, int]]:
        """
        Sums block weights from `head_id` down to the finalized block.

        Returns:
            (weight, candidate_id) where candidate_id is the lowest block above
            the finalized boundary (next finalization candidate), or None if
            the fork doesn't contain the finalized block.
        """
        weight_sum = Decimal(0)
        maybe_finalizable_id = head_id
        block_id = head_id

        while True:
            if block_id == GENESIS_ID:
                if finalized_id != GENESIS_ID:
                    return None
                break

            block = self.blocks[block_id]

            if block.height == finalized_height:
                if block_id == finalized_id:
                    break
                # fork with divergent finalized block
                return None

            weight_sum = ctx.add(weight_sum, block.weight)
            maybe_finalizable_id = block_id
            block_id = block.previous_block_id

        return weight_sum, maybe_finalizable_id

    def get_history(self):
        return self.blocks.values()


class FinalizedIndex:
    """
    Global height -> finalized block id map.

    A height is recorded once and afterwards only compared against.
    """

    def __init__(self):
        self.finalized_blocks: Dict[int, int] = {}

    def __len__(self):
        return len(self.finalized_blocks)

    def __contains__(self, height: int):
        return height in self.finalized_blocks

    def get(self, height: int) -> Optional[int]:
        return self.finalized_blocks.get(height)

    def record(self, height: int, block_id: int, validator_id: int) -> bool:
        """
        Records a finalization.

        Returns:
            bool: True if the height was finalized for the first time.

        Raises:
            FinalizationDivergence: another block is already finalized at this height.
        """
        other = self.finalized_blocks.get(height)
        if other is None:
            self.finalized_blocks[height] = block_id
            return True
        if other != block_id:
            raise FinalizationDivergence(height, other, block_id, validator_id)
        return False

    def heights(self) -> List[int]:
        return sorted(self.finalized_blocks)

    def items(self) -> List[Tuple[int, int]]:
        """(height, block_id) pairs ordered by height."""
        return sorted(self.finalized_blocks.items())
