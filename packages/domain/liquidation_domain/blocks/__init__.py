"""Computation blocks for liquidation analysis.

This package contains the computation layer that turns a cap table snapshot
and an exit amount into payouts.

Architecture:
    Schemas (data models) → Blocks (computation) → Payouts / DataFrames

Key concepts:
- Blocks are reusable computation units with explicit dependencies
- Each block declares its inputs and outputs
- Dependency graph enables topological execution
- Blocks are pure: no database access, no I/O

Available blocks:
- ConversionBlock: Resolves convertibles (convert vs. redeem)
- SeniorityBlock: Builds claims and orders them into seniority tiers
- WaterfallBlock: Distributes the exit amount and emits payouts + DataFrames

Usage:
    from liquidation_domain.blocks import (
        BlockContext, BlockExecutor, ConversionBlock, SeniorityBlock, WaterfallBlock
    )

    context = BlockContext()
    context.set("cap_table_snapshot", snapshot)
    context.set("liquidation_scenario", scenario)

    executor = BlockExecutor([ConversionBlock(), SeniorityBlock(), WaterfallBlock()])
    executor.execute(context)

    distribution = context.get("waterfall_distribution")
"""

from .base import Block, BlockExecutor, BlockContext
from .conversion import ConversionBlock, conversion_price_cents, resolve_convertibles
from .seniority import SeniorityBlock, build_claims, build_seniority_stack
from .waterfall import WaterfallBlock, distribute

__all__ = [
    "Block",
    "BlockExecutor",
    "BlockContext",
    "ConversionBlock",
    "SeniorityBlock",
    "WaterfallBlock",
    "conversion_price_cents",
    "resolve_convertibles",
    "build_claims",
    "build_seniority_stack",
    "distribute",
]
