"""ODE integrators implementing the moment systems for a given model.

Any object with an ``n_odes`` attribute and an ``integrate`` method of the
signature below can be passed to the path kernels; the classes here are the
diffrax-backed implementations built from an ``LNAModelRuntime``.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import jax
import jax.numpy as jnp
import diffrax

from .runtime import LNAModelRuntime, ParameterContext
from .kernel import make_moment_field, make_residual_field, _ode_integrate


@runtime_checkable
class OdeIntegrator(Protocol):
    """Integrates a fixed-size ODE system over one interval.

    Implementations read rates from ``context.current`` and must be
    deterministic given identical inputs and context.
    """

    n_odes: int

    def integrate(
        self,
        state: jax.Array,
        t_left: float,
        t_right: float,
        step: float,
        context: ParameterContext,
    ) -> jax.Array:
        """Advance ``state`` from ``t_left`` to ``t_right``; ``step`` bounds the internal step."""
        ...


class _DiffraxIntegrator:
    """Shared machinery: one ODETerm built per integrator so jit caches are reused."""

    def __init__(self, runtime: LNAModelRuntime, vector_field):
        self.runtime = runtime
        self._term = diffrax.ODETerm(vector_field)

    def integrate(
        self,
        state: jax.Array,
        t_left: float,
        t_right: float,
        step: float,
        context: ParameterContext,
    ) -> jax.Array:
        params = context.current
        y0 = jnp.asarray(state, dtype=params.dtype)
        return _ode_integrate(
            self._term,
            self.runtime.solver_type,
            y0,
            t_left,
            t_right,
            step,
            self.runtime.rtol,
            self.runtime.atol,
            params,
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(n_odes={self.n_odes}, "
            f"solver={self.runtime.solver_type!r})"
        )


class MomentIntegrator(_DiffraxIntegrator):
    """Drift and diffusion of the log-incidence increment over one interval.

    State: ``[drift (E), diffusion (E*E, row-major)]``; callers reset it to
    zero before every interval so the result is an increment.
    """

    def __init__(self, runtime: LNAModelRuntime):
        super().__init__(
            runtime,
            make_moment_field(runtime.stoichiometry, runtime.rate_fn, runtime.init_state_offset),
        )
        self.n_odes = runtime.n_events + runtime.n_events ** 2


class ResidualIntegrator(_DiffraxIntegrator):
    """Drift and conditional residual mean, carried across intervals.

    State: ``[drift (E), residual (E)]``.
    """

    def __init__(self, runtime: LNAModelRuntime):
        super().__init__(
            runtime,
            make_residual_field(runtime.stoichiometry, runtime.rate_fn, runtime.init_state_offset),
        )
        self.n_odes = 2 * runtime.n_events
