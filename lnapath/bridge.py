"""Shared transforms between raw moment-ODE output and path quantities.

These helpers are used by both the path sampler and the path density. They
are plain JAX functions; the Cholesky-based ones check their result on the
host because ``jnp.linalg.cholesky`` signals failure with NaNs instead of
raising.
"""

from __future__ import annotations

import math
from typing import Optional, Tuple

import jax
import jax.numpy as jnp
import jax.scipy.linalg as jla

from .errors import NumericalInstability


def split_moments(state: jax.Array, n_events: int) -> Tuple[jax.Array, jax.Array]:
    """Split a flattened moment buffer into drift vector and diffusion matrix.

    Args:
        state: Buffer of length ``n_events + n_events**2``
        n_events: Number of event types E

    Returns:
        (drift, diffusion) with shapes (E,) and (E, E), diffusion read row-major
    """
    drift = state[:n_events]
    diffusion = state[n_events:n_events + n_events * n_events].reshape(n_events, n_events)
    return drift, diffusion


def symmetrize_upper(matrix: jax.Array) -> jax.Array:
    """Rebuild a symmetric matrix from its upper triangle.

    Only one triangle of the integrated diffusion is reliable, so the lower
    triangle is discarded and replaced by the transpose of the upper one.
    The result equals its transpose exactly.
    """
    upper = jnp.triu(matrix)
    return upper + jnp.triu(matrix, k=1).T


def lower_cholesky(matrix: jax.Array, interval: Optional[int] = None) -> jax.Array:
    """Lower Cholesky factor, raising if the matrix is not positive-definite.

    Args:
        matrix: Symmetric (E, E) matrix
        interval: Interval index reported in the error, if any

    Returns:
        Lower-triangular factor L with ``L @ L.T == matrix``

    Raises:
        NumericalInstability: If the factorization fails
    """
    factor = jnp.linalg.cholesky(matrix)
    if not bool(jnp.all(jnp.isfinite(factor))):
        where = f" at interval {interval}" if interval is not None else ""
        raise NumericalInstability(
            f"Matrix is not positive-definite{where}: cannot compute Cholesky factor "
            f"(diagonal={jnp.diag(matrix)})",
            interval=interval,
        )
    return factor


def affine_log_increment(
    drift: jax.Array,
    diffusion: jax.Array,
    draws: jax.Array,
    interval: Optional[int] = None,
) -> jax.Array:
    """Map standard-normal draws to a log-scale incidence increment.

    Computes ``drift + chol(diffusion) @ draws``. The diffusion must already
    be symmetric; see ``symmetrize_upper`` for raw integrator output.

    Raises:
        NumericalInstability: If the diffusion is not positive-definite
    """
    factor = lower_cholesky(diffusion, interval=interval)
    return drift + factor @ draws


def natural_increment(log_increment: jax.Array) -> jax.Array:
    """Map a log-scale increment to counts, treating negatives as no events.

    ``exp(x) - 1`` is negative exactly when ``x < 0``, which would mean a
    negative number of events; those entries become zero.
    """
    return jnp.maximum(jnp.expm1(log_increment), 0.0)


def clamp_nonnegative(values: jax.Array) -> jax.Array:
    """Clamp negative entries (e.g. compartment volumes) to zero."""
    return jnp.maximum(values, 0.0)


def mvn_logpdf(
    x: jax.Array,
    mean: jax.Array,
    cov: jax.Array,
    index: Optional[int] = None,
) -> jax.Array:
    """Multivariate normal log-density evaluated through a Cholesky factor.

    Args:
        x: Point at which to evaluate, shape (d,)
        mean: Mean vector, shape (d,)
        cov: Covariance matrix, shape (d, d)
        index: Time index reported in the error, if any

    Returns:
        Scalar log-density

    Raises:
        NumericalInstability: If ``cov`` is not positive-definite
    """
    factor = lower_cholesky(cov, interval=index)
    y = jla.solve_triangular(factor, x - mean, lower=True)
    half_log_det = jnp.sum(jnp.log(jnp.diag(factor)))
    return -0.5 * (x.size * math.log(2 * math.pi) + jnp.dot(y, y)) - half_log_det


def log_increments(incidence_path: jax.Array) -> jax.Array:
    """Log-scale increments ``log(1 + Δ)`` of a cumulative incidence path.

    Args:
        incidence_path: (E+1, n) path with the time grid in row 0

    Returns:
        (E, n-1) array; column j is the log increment over interval j.
        Where no clamping occurred this recovers ``drift + L @ draws``.
    """
    return jnp.log1p(jnp.diff(incidence_path[1:], axis=1))
