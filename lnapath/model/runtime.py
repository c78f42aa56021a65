"""Runtime structures for compartmental LNA models.

This module provides the Penzai struct describing a model, and the
parameter context the ODE integrators read their rates from.
"""

from __future__ import annotations

import dataclasses
from typing import Callable, Optional, Tuple

import jax
import jax.numpy as jnp
from penzai.core import struct

from ..runtime import QuantityNode


@struct.pytree_dataclass
class LNAModelRuntime(struct.Struct):
    """JAX-ready description of a compartmental model.

    Attributes:
        stoichiometry: (C, E) matrix, column e is the effect of event e
        rate_fn: Hazard function ``(volumes, params) -> hazards`` of shape (E,)
        init_state_offset: Column of the parameter row where the C initial
            compartment volumes start
        solver_type: Solver name ('euler', 'heun', 'tsit5', 'dopri5', 'dopri8')
        sample_step: Internal ODE step for path proposals (canonical days)
        density_step: Internal ODE step for density reintegration (canonical days)
        days_per_unit: Length of one grid time unit in days
        rtol: Relative tolerance for adaptive solvers
        atol: Absolute tolerance for adaptive solvers
        compartments: Compartment names
        events: Event names
    """
    stoichiometry: jax.Array
    rate_fn: Callable = dataclasses.field(metadata={'pytree_node': False})
    init_state_offset: int = dataclasses.field(metadata={'pytree_node': False})
    solver_type: str = dataclasses.field(metadata={'pytree_node': False})
    sample_step: QuantityNode
    density_step: QuantityNode
    days_per_unit: float
    rtol: float
    atol: float
    compartments: Tuple[str, ...] = dataclasses.field(
        default=(), metadata={'pytree_node': False}
    )
    events: Tuple[str, ...] = dataclasses.field(
        default=(), metadata={'pytree_node': False}
    )

    @property
    def n_compartments(self) -> int:
        return int(self.stoichiometry.shape[0])

    @property
    def n_events(self) -> int:
        return int(self.stoichiometry.shape[1])

    def sample_step_in_grid(self) -> float:
        """Proposal step expressed in grid time units."""
        return self.sample_step.to_float() / self.days_per_unit

    def density_step_in_grid(self) -> float:
        """Density reintegration step expressed in grid time units."""
        return self.density_step.to_float() / self.days_per_unit


class ParameterContext:
    """Binding of the "current parameters" read by an ODE integrator.

    One context belongs to one sampling call (or one adapter). The path
    kernels reset it on entry and rebind it at every change point, so after a
    call it holds whatever row was bound last. Contexts are not safe to share
    between concurrent calls.

    Example:
        >>> context = ParameterContext()
        >>> context.set(jnp.array([0.3, 0.1, 990.0, 10.0, 0.0]))
        >>> context.update_count
        1

    Attributes:
        update_count: Number of ``set`` calls since the last reset
    """

    def __init__(self):
        self._current: Optional[jax.Array] = None
        self.update_count = 0

    def set(self, row) -> None:
        """Bind a parameter row."""
        self._current = jnp.asarray(row)
        self.update_count += 1

    def reset(self) -> None:
        """Drop the current binding."""
        self._current = None
        self.update_count = 0

    @property
    def is_bound(self) -> bool:
        return self._current is not None

    @property
    def current(self) -> jax.Array:
        """Currently bound parameter row.

        Raises:
            RuntimeError: If nothing has been bound since the last reset
        """
        if self._current is None:
            raise RuntimeError("No parameters bound. Call set() before integrating.")
        return self._current

    def __repr__(self) -> str:
        return f"ParameterContext(current={self._current}, update_count={self.update_count})"
