"""Moment ODE systems of the log-scale counting-process LNA.

The LNA is applied to ``Z = log(N + 1)`` where N is the vector of cumulative
event counts. With ``x(z) = x0 + S (exp(z) - 1)`` the compartment volumes
implied by log-incidence z, and ``h = rate_fn(x(z), params)`` the hazards,
Ito's formula gives the drift

    dz/dt = (exp(-z) - exp(-2z) / 2) * h

and the diffusion coefficient ``exp(-z) * sqrt(h)``. Two ODE systems are
built from this:

- the moment system (restarted at zero every interval): drift mean ``mu``
  and covariance ``Sigma`` with
  ``dSigma/dt = F Sigma + Sigma F^T + diag(exp(-2 mu) * h)``;
- the residual system (carried across intervals): drift ``eta`` and
  conditional residual mean ``m`` with ``dm/dt = F(eta) m``.

``F`` is the Jacobian of the drift, obtained with ``jax.jacfwd``.
"""

from __future__ import annotations

import functools
import math
from typing import Callable, Tuple

import jax
import jax.numpy as jnp
import diffrax


# Solver name -> (diffrax solver class, has error estimate)
SOLVERS = {
    'euler': (diffrax.Euler, False),
    'heun': (diffrax.Heun, True),
    'tsit5': (diffrax.Tsit5, True),
    'dopri5': (diffrax.Dopri5, True),
    'dopri8': (diffrax.Dopri8, True),
}

# diffrax's default max_steps
_MIN_MAX_STEPS = 4096


def _log_drift(
    z: jax.Array,
    init_volumes: jax.Array,
    stoichiometry: jax.Array,
    rate_fn: Callable,
    params: jax.Array,
) -> Tuple[jax.Array, Tuple[jax.Array, jax.Array]]:
    """Drift of log-incidence; aux carries (drift, hazards) for jacfwd."""
    volumes = init_volumes + stoichiometry @ jnp.expm1(z)
    hazards = rate_fn(volumes, params)
    drift = (jnp.exp(-z) - 0.5 * jnp.exp(-2.0 * z)) * hazards
    return drift, (drift, hazards)


def make_moment_field(
    stoichiometry: jax.Array,
    rate_fn: Callable,
    init_state_offset: int,
) -> Callable:
    """Build the vector field of the restarting drift/diffusion system.

    State layout: ``[mu (E), Sigma (E*E, row-major)]``.
    """
    n_comps, n_events = stoichiometry.shape

    def vector_field(t, y, params):
        init_volumes = params[init_state_offset:init_state_offset + n_comps]
        mu = y[:n_events]
        sigma = y[n_events:].reshape(n_events, n_events)

        drift_fn = functools.partial(
            _log_drift,
            init_volumes=init_volumes,
            stoichiometry=stoichiometry,
            rate_fn=rate_fn,
            params=params,
        )
        jac, (drift, hazards) = jax.jacfwd(drift_fn, has_aux=True)(mu)
        dsigma = jac @ sigma + sigma @ jac.T + jnp.diag(jnp.exp(-2.0 * mu) * hazards)

        return jnp.concatenate([drift, dsigma.ravel()])

    return vector_field


def make_residual_field(
    stoichiometry: jax.Array,
    rate_fn: Callable,
    init_state_offset: int,
) -> Callable:
    """Build the vector field of the carried drift/residual system.

    State layout: ``[eta (E), m (E)]``.
    """
    n_comps, n_events = stoichiometry.shape

    def vector_field(t, y, params):
        init_volumes = params[init_state_offset:init_state_offset + n_comps]
        eta = y[:n_events]
        residual = y[n_events:]

        drift_fn = functools.partial(
            _log_drift,
            init_volumes=init_volumes,
            stoichiometry=stoichiometry,
            rate_fn=rate_fn,
            params=params,
        )
        jac, (drift, _) = jax.jacfwd(drift_fn, has_aux=True)(eta)

        return jnp.concatenate([drift, jac @ residual])

    return vector_field


def _ode_integrate(
    term: diffrax.ODETerm,
    solver_type: str,
    y0: jax.Array,
    t0: float,
    t1: float,
    step: float,
    rtol: float,
    atol: float,
    params: jax.Array,
) -> jax.Array:
    """Internal ODE integration using diffrax.

    Args:
        term: ODE term wrapping the vector field
        solver_type: Key of SOLVERS
        y0: Initial state
        t0: Start time
        t1: End time
        step: Bound on the internal step size
        rtol: Relative tolerance (adaptive solvers)
        atol: Absolute tolerance (adaptive solvers)
        params: Parameter row passed to the vector field as ``args``

    Returns:
        State at t1
    """
    solver_cls, adaptive = SOLVERS[solver_type]
    span = float(t1) - float(t0)
    n_steps = max(1, int(math.ceil(span / step)))

    # Euler has no error estimate, so it always takes fixed steps
    if adaptive:
        stepsize_controller = diffrax.PIDController(rtol=rtol, atol=atol, dtmax=step)
        dt0 = min(step, span)
        max_steps = max(_MIN_MAX_STEPS, 4 * n_steps)
    else:
        stepsize_controller = diffrax.ConstantStepSize()
        dt0 = span / n_steps
        max_steps = n_steps + 1

    solution = diffrax.diffeqsolve(
        term,
        solver_cls(),
        t0=jnp.asarray(t0, dtype=y0.dtype),
        t1=jnp.asarray(t1, dtype=y0.dtype),
        dt0=jnp.asarray(dt0, dtype=y0.dtype),
        y0=y0,
        args=params,
        stepsize_controller=stepsize_controller,
        saveat=diffrax.SaveAt(t1=True),
        max_steps=max_steps,
    )

    return solution.ys[-1]
