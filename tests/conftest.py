import pytest
from decimal import Decimal

from experiments.config import SimulationConfig
from blockchain.block_store import BlockStore, FinalizedIndex
from blockchain.consensus_manager import ConsensusManager
from blockchain.events import EventScheduler
from blockchain.validator import Validator


@pytest.fixture
def make_config():
    """Small, fast configuration; keyword arguments override fields."""
    def _make(**overrides):
        values = dict(
            validators_count=2,
            stake_spread_factor=0,
            vdf_block_ticks=10,
            vdf_max_weight_ticks=5,
            latency_ticks=0,
            vdf_apply_retry_ticks=3,
            finalization_weight=10,
            stop_height=20,
        )
        values.update(overrides)
        return SimulationConfig(**values)
    return _make


@pytest.fixture
def make_engine(make_config):
    """Consensus manager over equal-power validators and an empty chain."""
    def _make(count=2, **overrides):
        config = make_config(validators_count=count, **overrides)
        power = Decimal(1) / Decimal(count)
        validators = [Validator(i, power) for i in range(count)]
        return ConsensusManager(config, validators, BlockStore(), FinalizedIndex(), EventScheduler())
    return _make


@pytest.fixture
def engine(make_engine):
    return make_engine()


def drain(scheduler):
    """Pops every pending event."""
    events = []
    while True:
        timed = scheduler.pop()
        if timed is None:
            return events
        events.append(timed)
