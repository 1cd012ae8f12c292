"""
Stake Weight Formula Module.

Computes the pseudo-random, stake-biased score of a block proposal.

    weight = (H(seed || shard || height || validator) / 2^256) ^ (1 / power)

Since power is in (0,1) the exponent is > 1, which pushes the score of
low-power validators towards 0. Taking the highest score among all validators
therefore elects each validator with a probability equal to its power.

All arithmetic uses a fixed-precision decimal context so identical inputs
give identical scores on every run.
"""
import hashlib
import math
from decimal import Context, Decimal, ROUND_DOWN
from typing import Callable, Dict, List

# Bits of mantissa used by the simulation (double precision).
DEFAULT_PRECISION = 53
HASH_BITS = 256
SHARD_ID = 0

_contexts: Dict[int, Context] = {}


def precision_context(precision: int = DEFAULT_PRECISION) -> Context:
    """
    Returns the decimal context matching a precision expressed in bits.

    Rounding is truncating, which keeps normalized draws strictly below 1.
    """
    if precision <= 0:
        raise ValueError(f"precision must be positive, got {precision}")
    ctx = _contexts.get(precision)
    if ctx is None:
        digits = max(1, math.ceil(precision * math.log10(2)))
        ctx = Context(prec=digits, rounding=ROUND_DOWN)
        _contexts[precision] = ctx
    return ctx


def _u64(value: int) -> bytes:
    return int(value).to_bytes(8, 'big')


def random_score(seed: bytes, height: int, shard: int, validator_id: int,
                 precision: int = DEFAULT_PRECISION) -> Decimal:
    """
    Hashes the block coordinates into a "random" number in [0, 2^256).

    Args:
        seed (bytes): Epoch seed.
        height (int): Block height.
        shard (int): Shard id.
        validator_id (int): Validator index.
        precision (int): Float precision in bits.

    Returns:
        Decimal: Digest read as a little-endian unsigned integer.
    """
    hasher = hashlib.sha3_256()
    hasher.update(seed)
    hasher.update(_u64(shard))
    hasher.update(_u64(height))
    hasher.update(_u64(validator_id))
    digest = int.from_bytes(hasher.digest(), 'little')
    return precision_context(precision).create_decimal(digest)


def _hash_max(ctx: Context) -> Decimal:
    return ctx.power(Decimal(2), HASH_BITS)


def weight(seed: bytes, power, height: int, shard: int, validator_id: int,
           precision: int = DEFAULT_PRECISION) -> Decimal:
    """
    Weight formula using a single exponentiation.

    Args:
        seed (bytes): Epoch seed.
        power: Validator power in (0,1).
        height (int): Block height.
        shard (int): Shard id.
        validator_id (int): Validator index.
        precision (int): Float precision in bits.

    Returns:
        Decimal: Score in [0,1).
    """
    ctx = precision_context(precision)
    rand = random_score(seed, height, shard, validator_id, precision)

    # Transform number in interval [0;1).
    normalized = ctx.divide(rand, _hash_max(ctx))
    if normalized.is_zero():
        return normalized

    exponent = ctx.divide(Decimal(1), ctx.create_decimal(power))
    score = ctx.power(normalized, exponent)

    # Keep scores strictly below 1.
    if score >= 1:
        score = ctx.next_minus(Decimal(1))
    return score


def weight_log(seed: bytes, power, height: int, shard: int, validator_id: int,
               precision: int = DEFAULT_PRECISION) -> Decimal:
    """
    Log-scaled weight formula: (ln(r) - ln(2^256)) / (power * ln(5)).

    Scores are non-positive and ordered like the exponential formula, so
    "highest score wins" elects the same distribution of winners.
    """
    ctx = precision_context(precision)
    rand = random_score(seed, height, shard, validator_id, precision)
    if rand.is_zero():
        return Decimal('-Infinity')

    ln_r = ctx.ln(rand)
    ln_max = ctx.ln(_hash_max(ctx))
    ln_d = ctx.ln(Decimal(5))
    return ctx.divide(ctx.subtract(ln_r, ln_max), ctx.multiply(ctx.create_decimal(power), ln_d))


FORMULAS: Dict[str, Callable[..., Decimal]] = {
    'exp': weight,
    'log': weight_log,
}


def get_formula(name: str) -> Callable[..., Decimal]:
    """Returns the weight formula registered under `name`."""
    if name not in FORMULAS:
        raise ValueError(f"Unknown weight formula: {name} (known: {', '.join(sorted(FORMULAS))})")
    return FORMULAS[name]


def stake(validator_id: int, spread_factor: int, precision: int = DEFAULT_PRECISION) -> Decimal:
    """
    Generates the raw stake of a validator: 1 + (10 * u) ^ spread_factor.

    u is a hash of the validator id normalized into [0,1). A higher spread
    factor results in greater differences between the biggest validators
    and the others.
    """
    ctx = precision_context(precision)
    hasher = hashlib.sha3_256()
    hasher.update(b"validator")
    hasher.update(_u64(validator_id))
    digest = int.from_bytes(hasher.digest(), 'little')

    u = ctx.divide(ctx.create_decimal(digest), _hash_max(ctx))
    scaled = ctx.multiply(u, Decimal(10))
    return ctx.add(Decimal(1), ctx.power(scaled, int(spread_factor)))


def powers(count: int, spread_factor: int, precision: int = DEFAULT_PRECISION) -> List[Decimal]:
    """
    Generates validators powers.

    Returns:
        List[Decimal]: Normalized powers summing to 1, highest first.
    """
    if count <= 0:
        raise ValueError(f"validator count must be positive, got {count}")
    ctx = precision_context(precision)

    stakes = [stake(i, spread_factor, precision) for i in range(count)]
    stakes_sum = Decimal(0)
    for s in stakes:
        stakes_sum = ctx.add(stakes_sum, s)

    stakes.sort(reverse=True)
    return [ctx.divide(s, stakes_sum) for s in stakes]
