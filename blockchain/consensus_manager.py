"""
Consensus Manager Module.

Fork-choice and finality state machine of every validator:
1. BlockReceived: weigh the fork, start the next VDF race, adopt the heaviest
   head and finalize ancestors once enough weight piled up above them.
2. VdfFinished: turn a finished VDF into a block, retry it later if the chain
   isn't there yet, or drop it if it belongs to an abandoned branch.
3. Block creation and gossip to all validators.

Handlers never touch another validator's state; everything shared (block
store, finalized index, scheduler) is append-only.
"""
import logging
from decimal import Decimal
from typing import List, Optional

from weight.formula import weight as block_weight, precision_context, SHARD_ID
from weight.vdf import vdf_delay

from .block import Block, GENESIS_ID
from .block_store import BlockStore, FinalizedIndex
from .events import BlockReceived, EventScheduler, VdfFinished
from .validator import Validator

logger = logging.getLogger(__name__)


class ConsensusManager:
    def __init__(self, config, validators: List[Validator], store: BlockStore,
                 finalized_index: FinalizedIndex, scheduler: EventScheduler):
        """
        Args:
            config: SimulationConfig of the run.
            validators: Validator table, indexed by validator id.
            store: Shared block store.
            finalized_index: Shared height -> finalized block map.
            scheduler: Event queue receiving new events.
        """
        self.config = config
        self.validators = validators
        self.store = store
        self.finalized_index = finalized_index
        self.scheduler = scheduler

        self.ctx = precision_context(config.float_precision)
        self.finalization_weight = self.ctx.create_decimal(config.finalization_weight)
        self.seed = config.seed_bytes
        # Premature VdfFinished events pushed back into the queue
        self.retries = 0

    # ------------------------------------------------------------------
    # BlockReceived
    # ------------------------------------------------------------------
    def on_block_received(self, time: int, validator_id: int, block_id: int):
        validator = self.validators[validator_id]

        if block_id == GENESIS_ID:
            # Start signal: two races off genesis, for heights 1 and 2.
            self.start_vdf(time, validator_id, GENESIS_ID, 1)
            self.start_vdf(time, validator_id, GENESIS_ID, 2)
            return

        block = self.store.get(block_id)

        result = self.store.compute_fork_weight(
            block_id, validator.finalized_block_id, validator.finalized_height, self.ctx
        )
        if result is None:
            logger.debug("Validator %d ignores block %d: not based on its finalized block %d",
                         validator_id, block_id, validator.finalized_block_id)
            return
        weight, maybe_finalizable_id = result

        # Start VDF on all forks to avoid halting after reorgs
        if block.height < self.config.stop_height:
            self.start_vdf(time, validator_id, block_id, block.height + 2)
        else:
            logger.debug("Validator %d reached stop height with block %d", validator_id, block_id)

        if weight <= validator.current_fork_weight:
            logger.debug("Validator %d refused head %d (%s <= %s)",
                         validator_id, block_id, weight, validator.current_fork_weight)
            return

        logger.debug("Validator %d accepts head %d (%s > %s)",
                     validator_id, block_id, weight, validator.current_fork_weight)
        validator.current_head_id = block_id
        validator.current_fork_weight = weight

        # Create next block if the new head parent already finished its VDF.
        child_weight = validator.finished_vdf_for(block.previous_block_id, block.height + 1)
        if child_weight is not None:
            self.create_block(time, validator_id, block.height + 1, block_id, child_weight)

        self.finalize(validator, block_id, weight, maybe_finalizable_id)

    def finalize(self, validator: Validator, head_id: int, weight: Decimal, maybe_finalizable_id: int):
        """
        Moves the finalized boundary up while the fork weight exceeds the threshold.

        Raises:
            FinalizationDivergence: a different block was already finalized at that height.
        """
        while weight > self.finalization_weight:
            finalized_height = self.store.height_of(maybe_finalizable_id)

            if self.finalized_index.record(finalized_height, maybe_finalizable_id, validator.id):
                logger.debug("Height %d finalized with block %d", finalized_height, maybe_finalizable_id)

            validator.finalized_block_id = maybe_finalizable_id
            validator.finalized_height = finalized_height

            result = self.store.compute_fork_weight(
                head_id, maybe_finalizable_id, finalized_height, self.ctx
            )
            if result is None:
                logger.error("Head %d of validator %d doesn't descend from its finalized block %d",
                             head_id, validator.id, maybe_finalizable_id)
                return

            weight, maybe_finalizable_id = result
            validator.current_fork_weight = weight

    # ------------------------------------------------------------------
    # VdfFinished
    # ------------------------------------------------------------------
    def on_vdf_finished(self, time: int, validator_id: int, event: VdfFinished):
        validator = self.validators[validator_id]
        input_block_id, output_block_height, weight = event

        validator.finished_vdf[input_block_id] = (output_block_height, weight)

        if input_block_id == GENESIS_ID and output_block_height == 1:
            self.create_block(time, validator_id, output_block_height, GENESIS_ID, weight)
            return

        head_id = validator.current_head_id

        if head_id == input_block_id:
            logger.debug("Validator %d finished VDF on its head %d too early, retrying",
                         validator_id, head_id)
            self.scheduler.push(time + self.config.vdf_apply_retry_ticks, validator_id, event)
            self.retries += 1
            return

        if head_id == GENESIS_ID:
            logger.debug("Validator %d has no head yet, dropped VDF on %d", validator_id, input_block_id)
            return

        head_block = self.store.get(head_id)

        if head_block.previous_block_id != input_block_id:
            logger.debug("Validator %d dropped VDF on %d: head %d has parent %d",
                         validator_id, input_block_id, head_id, head_block.previous_block_id)
            return

        self.create_block(time, validator_id, output_block_height, head_id, weight)

    def is_premature(self, validator_id: int, event: VdfFinished) -> bool:
        """True if the VDF is rooted at the validator's current head and must wait for its child."""
        if event.input_block_id == GENESIS_ID and event.output_block_height == 1:
            return False
        return event.input_block_id == self.validators[validator_id].current_head_id

    # ------------------------------------------------------------------
    # VDF & block creation
    # ------------------------------------------------------------------
    def start_vdf(self, time: int, validator_id: int, input_block_id: int, output_block_height: int) -> int:
        """Schedules the VdfFinished event of a new VDF. Returns its end time."""
        validator = self.validators[validator_id]
        weight = block_weight(
            self.seed, validator.power, output_block_height, SHARD_ID, validator_id,
            self.config.float_precision,
        )
        ticks = vdf_delay(
            weight, input_block_id, output_block_height,
            self.config.vdf_block_ticks, self.config.vdf_max_weight_ticks,
            self.config.float_precision,
        )
        end_time = time + ticks
        self.scheduler.push(end_time, validator_id, VdfFinished(input_block_id, output_block_height, weight))
        return end_time

    def create_block(self, time: int, validator_id: int, height: int, previous_block_id: int,
                     weight: Decimal) -> Optional[Block]:
        """
        Creates a block and gossips it to every validator.

        Returns None if the validator already created a block at this height or above.
        """
        validator = self.validators[validator_id]
        if height <= validator.latest_created_height:
            logger.debug("Validator %d can no longer create a block at height %d (latest %d)",
                         validator_id, height, validator.latest_created_height)
            return None

        validator.latest_created_height = height

        block = self.store.add_block(height, previous_block_id, validator_id, weight, time)
        validator.created_blocks += 1
        logger.debug("Pushed %r", block)

        for other in self.validators:
            latency = 0 if other.id == validator_id else self.config.latency_ticks
            self.scheduler.push(time + latency, other.id, BlockReceived(block.id))

        return block
