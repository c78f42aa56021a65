"""Runtime structures using Penzai for JAX-compatible unit-aware computations.

This module provides Penzai structs that keep unit metadata attached to
values while remaining ordinary pytrees for jit, grad, and vmap.
"""

from __future__ import annotations

import dataclasses
import jax
import jax.numpy as jnp
from penzai.core import struct

from .units import UnitManager, UnitSpec


# Register JAX pytree for UnitSpec so it can be used as metadata
jax.tree_util.register_static(UnitSpec)


@struct.pytree_dataclass
class QuantityNode(struct.Struct):
    """A Penzai struct that holds a value with unit metadata.

    The value field participates in JAX transformations, the units field is
    static metadata.

    Attributes:
        value: JAX array containing the numerical value in canonical units
        units: UnitSpec metadata describing the units
    """
    value: jax.Array
    units: UnitSpec = dataclasses.field(metadata={'pytree_node': False})

    @classmethod
    def from_float(cls, value: float, units: UnitSpec) -> QuantityNode:
        """Create a QuantityNode from a float value in canonical units."""
        return cls(value=jnp.asarray(value, dtype=float), units=units)

    def to_float(self) -> float:
        """Extract the float value (assumes scalar array)."""
        return float(self.value)

    def in_unit(self, unit: str) -> float:
        """Express the canonical value in another unit of the same dimension.

        Args:
            unit: Target unit string, e.g. ``"week"``

        Returns:
            Float value in the requested unit
        """
        manager = UnitManager.instance()
        return manager.convert(self.to_float(), self.units.dimension, unit)

    def __repr__(self) -> str:
        return f"QuantityNode({self.value}, {self.units.symbol})"


def tree_info(pytree) -> str:
    """Get information about a pytree structure.

    Useful for debugging and understanding the structure of runtime objects.

    Args:
        pytree: Any pytree structure

    Returns:
        String description of the pytree structure
    """
    flat, treedef = jax.tree_util.tree_flatten(pytree)
    return (
        f"PyTree with {len(flat)} leaves:\n"
        f"  Structure: {treedef}\n"
        f"  Leaf shapes: {[getattr(x, 'shape', type(x).__name__) for x in flat]}"
    )
