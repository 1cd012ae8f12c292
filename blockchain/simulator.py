"""
Simulation Driver.

Owns the scheduler, block store, finalized index and validator table.
Pops one event at a time and runs its handler to completion.
"""
import logging
from typing import List, Optional

from weight.formula import powers

from .block import GENESIS_ID
from .block_store import BlockStore, FinalizedIndex
from .consensus_manager import ConsensusManager
from .errors import FinalizationDivergence
from .events import BlockReceived, EventScheduler, TimedEvent, VdfFinished
from .validator import Validator

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL = 100  # finalized heights between progress logs


class Simulator:
    def __init__(self, config, record_events: bool = False):
        """
        Args:
            config: SimulationConfig of the run.
            record_events (bool): Keep every processed TimedEvent in `event_log`.
        """
        self.config = config

        self.powers = powers(config.validators_count, config.stake_spread_factor, config.float_precision)
        self.validators: List[Validator] = [Validator(i, p) for i, p in enumerate(self.powers)]

        self.store = BlockStore()
        self.finalized_index = FinalizedIndex()
        self.scheduler = EventScheduler()
        self.consensus = ConsensusManager(config, self.validators, self.store,
                                          self.finalized_index, self.scheduler)

        self.steps = 0
        self.time = 0
        self.stop = False
        self.stalled = False
        self.divergence: Optional[FinalizationDivergence] = None

        self.record_events = record_events
        self.event_log: List[TimedEvent] = []
        self._progress_mark = 0
        self._idle_retries = 0

        for validator in self.validators:
            self.scheduler.push(0, validator.id, BlockReceived(GENESIS_ID))

    def run(self) -> bool:
        """
        Runs until the queue drains or stalls, the step cap is hit, or a divergence occurs.

        Returns:
            bool: True if the run ended without divergence.
        """
        logger.info("Running simulation: %d validators, stop height %d",
                    len(self.validators), self.config.stop_height)

        while True:
            if self.config.step_stop is not None and self.steps >= self.config.step_stop:
                logger.info("Reached stop step %d", self.steps)
                break

            if not self.step() or self.stop:
                break

        logger.info("Simulation complete: %d events, %d blocks, %d finalized heights",
                    self.steps, len(self.store), len(self.finalized_index))
        return self.divergence is None

    def step(self) -> bool:
        """
        Processes the earliest pending event.

        Returns:
            bool: False if there was nothing to process or the run is stopped.
        """
        if self.stop:
            return False

        timed = self.scheduler.pop()
        if timed is None:
            return False

        self.steps += 1
        self.time = timed.time
        if self.record_events:
            self.event_log.append(timed)

        retries = self.consensus.retries
        try:
            self.process_event(timed)
        except FinalizationDivergence as e:
            logger.error("FINALIZATION DIVERGENCE: %s", e)
            self.divergence = e
            self.stop = True

        if self.consensus.retries > retries:
            self._idle_retries += 1
            if self._idle_retries > len(self.scheduler):
                self._check_stalled()
        else:
            self._idle_retries = 0

        self._log_progress()
        return True

    def process_event(self, timed: TimedEvent):
        time, validator_id, event = timed

        if isinstance(event, BlockReceived):
            self.consensus.on_block_received(time, validator_id, event.block_id)
        elif isinstance(event, VdfFinished):
            self.consensus.on_vdf_finished(time, validator_id, event)
        else:
            raise TypeError(f"Unknown event {event!r}")

    def _check_stalled(self):
        """
        Stops the run once every pending event is a VDF waiting on a head that
        will never get a child. Processing them would only reschedule them.
        """
        self._idle_retries = 0
        pending = self.scheduler.pending()
        if all(isinstance(e.event, VdfFinished) and self.consensus.is_premature(e.validator_id, e.event)
               for e in pending):
            logger.warning("Simulation stalled at tick %d: %d VDF results can never be applied",
                           self.time, len(pending))
            self.stalled = True
            self.stop = True

    def _log_progress(self):
        finalized = len(self.finalized_index)
        if finalized >= self._progress_mark + PROGRESS_INTERVAL:
            self._progress_mark = finalized - finalized % PROGRESS_INTERVAL
            logger.info("Finalized %d/%d heights (tick %d)", finalized, self.config.stop_height, self.time)

    def get_results(self):
        return {
            'powers': self.powers,
            'validators': self.validators,
            'store': self.store,
            'finalized_index': self.finalized_index,
            'steps': self.steps,
            'stalled': self.stalled,
            'divergence': self.divergence,
        }
