"""Base classes for computation blocks.

The liquidation pipeline is a small DAG of blocks:

    cap_table_snapshot, liquidation_scenario
        → ConversionBlock  → convertible_resolutions
        → SeniorityBlock   → seniority_stack
        → WaterfallBlock   → waterfall_distribution (+ DataFrame views)

This module provides the Block abstract base class, the BlockContext passed
between blocks, and the BlockExecutor that orders blocks topologically.
"""

from abc import ABC, abstractmethod
from collections import deque
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field

import structlog

logger = structlog.get_logger()


# =============================================================================
# Block Context
# =============================================================================

@dataclass
class BlockContext:
    """Keyed store that blocks read inputs from and write outputs to.

    Example:
        context = BlockContext()
        context.set("cap_table_snapshot", snapshot)
        context.set("liquidation_scenario", scenario)

        ConversionBlock().execute(context)
        resolutions = context.get("convertible_resolutions")
    """

    _data: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str) -> Any:
        """Get value from context.

        Raises:
            KeyError: If key not found in context
        """
        if key not in self._data:
            raise KeyError(f"Key '{key}' not found in context. Available keys: {list(self._data.keys())}")
        return self._data[key]

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def has(self, key: str) -> bool:
        return key in self._data

    def keys(self) -> List[str]:
        return list(self._data.keys())


# =============================================================================
# Block Base Class
# =============================================================================

class Block(ABC):
    """Abstract base class for computation blocks.

    A Block:
    1. Declares the context keys it reads (inputs)
    2. Declares the context keys it writes (outputs)
    3. Implements the computation in execute()

    Blocks never touch persistence; loading and recording happen around the
    executor, so every block is pure in-memory arithmetic.
    """

    @abstractmethod
    def inputs(self) -> List[str]:
        """Context keys this block reads."""
        pass

    @abstractmethod
    def outputs(self) -> List[str]:
        """Context keys this block writes."""
        pass

    @abstractmethod
    def execute(self, context: BlockContext) -> None:
        """Read inputs from context, compute, write outputs to context.

        Raises:
            KeyError: If required inputs not available in context
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(inputs={self.inputs()}, outputs={self.outputs()})"


# =============================================================================
# Dependency Resolution
# =============================================================================

class CircularDependencyError(Exception):
    """Raised when blocks have circular dependencies."""
    pass


def topological_sort(blocks: List[Block]) -> List[Block]:
    """Order blocks so every block runs after the blocks producing its inputs.

    Kahn's algorithm. Inputs that no block produces must be seeded into the
    initial context by the caller.

    Raises:
        ValueError: If two blocks produce the same output key
        CircularDependencyError: If blocks have circular dependencies

    Example:
        topological_sort([WaterfallBlock(), ConversionBlock(), SeniorityBlock()])
        → [ConversionBlock, SeniorityBlock, WaterfallBlock]
    """
    producers: Dict[str, Block] = {}
    for block in blocks:
        for output_key in block.outputs():
            if output_key in producers:
                raise ValueError(
                    f"Multiple blocks produce '{output_key}': "
                    f"{producers[output_key]} and {block}"
                )
            producers[output_key] = block

    in_degree: Dict[Block, int] = {block: 0 for block in blocks}
    dependents: Dict[Block, List[Block]] = {block: [] for block in blocks}

    for block in blocks:
        for input_key in block.inputs():
            producer = producers.get(input_key)
            if producer is not None:
                dependents[producer].append(block)
                in_degree[block] += 1

    ready = deque(block for block in blocks if in_degree[block] == 0)
    ordered: List[Block] = []

    while ready:
        current = ready.popleft()
        ordered.append(current)
        for dependent in dependents[current]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                ready.append(dependent)

    if len(ordered) != len(blocks):
        remaining = [block for block in blocks if in_degree[block] > 0]
        raise CircularDependencyError(
            f"Circular dependency detected among blocks: {remaining}"
        )

    return ordered


# =============================================================================
# Block Executor
# =============================================================================

class BlockExecutor:
    """Executes blocks in dependency order.

    Example:
        executor = BlockExecutor([WaterfallBlock(), SeniorityBlock(), ConversionBlock()])
        context = BlockContext()
        context.set("cap_table_snapshot", snapshot)
        context.set("liquidation_scenario", scenario)

        executor.execute(context)
        distribution = context.get("waterfall_distribution")
    """

    def __init__(self, blocks: List[Block]):
        self.blocks = blocks
        self._sorted_blocks: Optional[List[Block]] = None

    def execute(self, context: BlockContext) -> BlockContext:
        """Execute all blocks in dependency order.

        Raises:
            CircularDependencyError: If blocks have circular dependencies
            KeyError: If required inputs not available in context
            ValueError: If a block fails to write a declared output
        """
        if self._sorted_blocks is None:
            self._sorted_blocks = topological_sort(self.blocks)

        for block in self._sorted_blocks:
            self._validate_inputs(block, context)
            block.execute(context)
            self._validate_outputs(block, context)
            logger.debug("block_executed", block=block.__class__.__name__)

        return context

    def _validate_inputs(self, block: Block, context: BlockContext) -> None:
        for input_key in block.inputs():
            if not context.has(input_key):
                raise KeyError(
                    f"Block {block} requires input '{input_key}' but it's not in context. "
                    f"Available keys: {context.keys()}"
                )

    def _validate_outputs(self, block: Block, context: BlockContext) -> None:
        for output_key in block.outputs():
            if not context.has(output_key):
                raise ValueError(
                    f"Block {block} declared output '{output_key}' but didn't write it to context"
                )
