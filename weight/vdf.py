"""
VDF Timing Model.

A VDF (Verifiable Delay Function) is modeled as a plain tick delay:

    delay = depth * vdf_block_ticks + trunc(vdf_max_weight_ticks * (1 - weight))

depth is 1 for a VDF rooted at a real block and `output_height` for a VDF
rooted at genesis (heights 1 and 2 are both started from genesis).
A heavier weight finishes sooner, so the VDF race doubles as the leader race.
"""
from decimal import Decimal

from weight.formula import precision_context, DEFAULT_PRECISION

GENESIS_ID = 0


def vdf_depth(input_block_id: int, output_height: int) -> int:
    """Number of block lengths the VDF has to run for."""
    if input_block_id == GENESIS_ID:
        return output_height
    return 1


def weight_ticks(weight: Decimal, vdf_max_weight_ticks: int, precision: int = DEFAULT_PRECISION) -> int:
    """Extra delay attributable to the weight, truncated to whole ticks."""
    ctx = precision_context(precision)
    remaining = ctx.subtract(Decimal(1), weight)
    return max(0, int(ctx.multiply(Decimal(vdf_max_weight_ticks), remaining)))


def vdf_delay(weight: Decimal, input_block_id: int, output_height: int,
              vdf_block_ticks: int, vdf_max_weight_ticks: int,
              precision: int = DEFAULT_PRECISION) -> int:
    """
    Computes how many ticks a VDF takes to complete.

    Args:
        weight (Decimal): Weight of the block the VDF will produce.
        input_block_id (int): Block the VDF is rooted at (0 = genesis).
        output_height (int): Height of the block the VDF will produce.
        vdf_block_ticks (int): Ticks per block of VDF depth.
        vdf_max_weight_ticks (int): Maximum extra ticks for a zero weight.

    Returns:
        int: Delay in ticks.
    """
    base_ticks = vdf_depth(input_block_id, output_height) * vdf_block_ticks
    return base_ticks + weight_ticks(weight, vdf_max_weight_ticks, precision)
