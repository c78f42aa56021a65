"""Path proposal kernel for the non-centered log-scale LNA.

A path is a deterministic function of the parameter schedule and a matrix of
standard-normal perturbations. Each interval restarts the moment ODEs at
zero, so the integrator returns the drift and diffusion of that interval's
log-incidence increment directly.
"""

from __future__ import annotations

import logging
import warnings
from typing import Any, Dict, Optional, Tuple

import jax
import jax.numpy as jnp

from ..bridge import (
    affine_log_increment,
    clamp_nonnegative,
    natural_increment,
    split_moments,
    symmetrize_upper,
)
from ..model.integrators import OdeIntegrator
from ..model.runtime import ParameterContext
from ..schedule.runtime import ParameterSchedule
from ..validation import validate_sampler_inputs
from .runtime import LNAPath


logger = logging.getLogger(__name__)

# Internal ODE step bound for proposals, in grid time units
SAMPLE_STEP = 0.001


def draw_perturbations(key: jax.Array, n_events: int, n_times: int) -> jax.Array:
    """Draw the (E, n-1) matrix of i.i.d. standard-normal perturbations.

    Args:
        key: JAX PRNG key
        n_events: Number of event types E
        n_times: Number of time points n

    Returns:
        Perturbation matrix, one column per interval
    """
    return jax.random.normal(key, (n_events, n_times - 1), dtype=float)


def _propagate(
    schedule: ParameterSchedule,
    init_state_offset: int,
    stoichiometry: jax.Array,
    integrator: OdeIntegrator,
    context: ParameterContext,
    draws: jax.Array,
    step: float,
) -> Dict[str, Any]:
    """Run the interval loop, collecting the path and per-interval quantities."""
    n_comps, n_events = stoichiometry.shape
    init_end = init_state_offset + n_comps
    times = schedule.times

    if not schedule.flagged(0):
        warnings.warn(
            "Update flag for the first time point is unset; row 0 is always bound "
            "before the first interval.",
            UserWarning,
            stacklevel=3,
        )

    # Row 0 is bound regardless of its flag
    context.reset()
    current_params = schedule.row(0)
    context.set(current_params)

    init_volumes = current_params[init_state_offset:init_end]
    cum_incidence = jnp.zeros(n_events, dtype=current_params.dtype)
    zero_state = jnp.zeros(integrator.n_odes, dtype=current_params.dtype)

    incidence = [cum_incidence]
    volumes_path = [init_volumes]
    drifts, diffusions, log_increments = [], [], []
    clamped_increments = 0
    clamped_volumes = 0

    for j in range(schedule.n_intervals):
        moments = integrator.integrate(zero_state, times[j], times[j + 1], step, context)

        drift, diffusion = split_moments(moments, n_events)
        diffusion = symmetrize_upper(diffusion)
        log_increment = affine_log_increment(drift, diffusion, draws[:, j], interval=j)

        nat_increment = natural_increment(log_increment)
        clamped_increments += int(jnp.sum(log_increment < 0))

        cum_incidence = cum_incidence + nat_increment

        raw_volumes = init_volumes + stoichiometry @ cum_incidence
        volumes = clamp_nonnegative(raw_volumes)
        clamped_volumes += int(jnp.sum(raw_volumes < 0))

        if schedule.flagged(j + 1):
            current_params = schedule.row(j + 1)

        # The next interval restarts from the current volumes
        current_params = current_params.at[init_state_offset:init_end].set(volumes)
        context.set(current_params)

        incidence.append(cum_incidence)
        volumes_path.append(volumes)
        drifts.append(drift)
        diffusions.append(diffusion)
        log_increments.append(log_increment)

    path = jnp.vstack([times.astype(cum_incidence.dtype), jnp.stack(incidence, axis=1)])

    logger.debug(
        "Proposed LNA path over %d intervals (%d clamped increments, %d clamped volumes)",
        schedule.n_intervals, clamped_increments, clamped_volumes,
    )

    return {
        'path': path,
        'volumes': jnp.stack(volumes_path),
        'drift': jnp.stack(drifts),
        'diffusion': jnp.stack(diffusions),
        'log_increments': jnp.stack(log_increments),
        'clamped_increments': clamped_increments,
        'clamped_volumes': clamped_volumes,
    }


def _resolve_draws(
    draws: Optional[jax.Array],
    key: Optional[jax.Array],
    n_events: int,
    n_times: int,
) -> jax.Array:
    if draws is not None:
        return jnp.asarray(draws)
    if key is None:
        raise ValueError("Provide either perturbations (draws) or a PRNG key to draw them")
    return draw_perturbations(key, n_events, n_times)


def sample_path(
    schedule: ParameterSchedule,
    init_state_offset: int,
    stoichiometry: jax.Array,
    integrator: OdeIntegrator,
    context: ParameterContext,
    draws: Optional[jax.Array] = None,
    *,
    key: Optional[jax.Array] = None,
    step: float = SAMPLE_STEP,
) -> LNAPath:
    """Propose an LNA path on its natural (cumulative incidence) scale.

    For each interval the moment ODEs are integrated from zero, the
    perturbation column is mapped through ``drift + L z`` with L the lower
    Cholesky factor of the symmetrized diffusion, and the increment
    ``exp(.) - 1`` (clamped at zero) is added to the cumulative incidence.
    Compartment volumes (clamped at zero) are written into the parameter
    row before the next interval, switching to the next schedule row at
    change points.

    Args:
        schedule: Time grid, parameter rows and update flags
        init_state_offset: Column where initial volumes start in a parameter row
        stoichiometry: (C, E) stoichiometry matrix
        integrator: Moment integrator with ``E + E*E`` ODEs
        context: Parameter context; reset on entry, left bound to the last row
        draws: (E, n-1) perturbations; drawn from ``key`` when omitted
        key: PRNG key used only when ``draws`` is None
        step: Internal ODE step bound in grid time units

    Returns:
        LNAPath holding the (E+1, n) path and the perturbations used

    Raises:
        DimensionMismatch: Inconsistent shapes, before any integration
        InvalidSchedule: Malformed time grid or update flags
        NumericalInstability: A diffusion matrix is not positive-definite
    """
    stoichiometry = jnp.asarray(stoichiometry)
    validate_sampler_inputs(schedule, init_state_offset, stoichiometry, integrator.n_odes, draws)
    draws = _resolve_draws(draws, key, stoichiometry.shape[1], schedule.n_times)

    result = _propagate(schedule, init_state_offset, stoichiometry, integrator, context, draws, step)
    return LNAPath(path=result['path'], draws=draws)


def sample_path_with_diagnostics(
    schedule: ParameterSchedule,
    init_state_offset: int,
    stoichiometry: jax.Array,
    integrator: OdeIntegrator,
    context: ParameterContext,
    draws: Optional[jax.Array] = None,
    *,
    key: Optional[jax.Array] = None,
    step: float = SAMPLE_STEP,
) -> Tuple[LNAPath, Dict[str, Any]]:
    """Propose a path and return intermediate values for debugging.

    Same algorithm as sample_path.

    Returns:
        (path, diagnostics) where diagnostics contains:
        - 'volumes': (n, C) compartment volumes at each time point
        - 'drift': (n-1, E) drift vector per interval
        - 'diffusion': (n-1, E, E) symmetrized diffusion per interval
        - 'log_increments': (n-1, E) log-scale increments before clamping
        - 'clamped_increments': number of increments clamped to zero
        - 'clamped_volumes': number of volumes clamped to zero
    """
    stoichiometry = jnp.asarray(stoichiometry)
    validate_sampler_inputs(schedule, init_state_offset, stoichiometry, integrator.n_odes, draws)
    draws = _resolve_draws(draws, key, stoichiometry.shape[1], schedule.n_times)

    result = _propagate(schedule, init_state_offset, stoichiometry, integrator, context, draws, step)
    path = LNAPath(path=result.pop('path'), draws=draws)
    return path, result
