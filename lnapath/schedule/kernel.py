"""Parameter-matrix helpers.

Pure functions for assembling and inspecting the per-time-point parameter
matrix. None of them touch a parameter context.
"""

from __future__ import annotations

from typing import Sequence, Union

import numpy as np
import jax
import jax.numpy as jnp

from ..errors import DimensionMismatch, InvalidSchedule


def insert_parameters(lna_pars: jax.Array, parameters: jax.Array) -> jax.Array:
    """Broadcast a parameter vector into the leading columns of every row.

    The leading columns of the parameter matrix are reserved for the model
    parameters; the remaining columns hold constants, initial volumes and
    covariates and are left untouched.

    Args:
        lna_pars: Parameter matrix, shape (n, P)
        parameters: Parameter vector, shape (k,) with k <= P

    Returns:
        New (n, P) matrix with ``[:, :k]`` replaced by ``parameters``

    Raises:
        DimensionMismatch: If the vector is longer than a row

    Example:
        >>> pars = jnp.zeros((3, 4))
        >>> new_pars = insert_parameters(pars, jnp.array([0.5, 0.2]))
        >>> new_pars[:, :2].tolist()
        [[0.5, 0.2], [0.5, 0.2], [0.5, 0.2]]
    """
    lna_pars = jnp.asarray(lna_pars)
    parameters = jnp.ravel(jnp.asarray(parameters, dtype=lna_pars.dtype))
    n_pars = parameters.shape[0]

    if lna_pars.ndim != 2:
        raise DimensionMismatch(f"Parameter matrix must be 2-D, got shape {lna_pars.shape}")
    if n_pars > lna_pars.shape[1]:
        raise DimensionMismatch(
            f"Cannot insert {n_pars} parameters into rows of length {lna_pars.shape[1]}"
        )

    return lna_pars.at[:, :n_pars].set(jnp.broadcast_to(parameters, (lna_pars.shape[0], n_pars)))


def detect_update_points(lna_pars: jax.Array) -> jax.Array:
    """Flag the rows at which the parameter context must be refreshed.

    Row 0 is always flagged; row j is flagged when it differs from row j-1
    (e.g. a time-varying covariate changes value).

    Args:
        lna_pars: Parameter matrix, shape (n, P)

    Returns:
        Boolean mask of shape (n,)
    """
    pars = np.asarray(lna_pars)
    changed = np.any(pars[1:] != pars[:-1], axis=1)
    return jnp.asarray(np.concatenate([[True], changed]))


def update_mask(
    flags: Union[Sequence[bool], Sequence[int], jax.Array, np.ndarray],
    n_times: int,
) -> jax.Array:
    """Normalize update flags to a boolean mask of length ``n_times``.

    Accepts either a boolean mask or a sequence of distinct row indices.
    Integer 0/1 masks are not accepted: pass them as booleans.

    Raises:
        InvalidSchedule: If a mask has the wrong length, an index is out of
            range, or an index repeats
    """
    flags = np.asarray(flags)

    if flags.dtype == np.bool_:
        if flags.shape != (n_times,):
            raise InvalidSchedule(
                f"Update mask must have one entry per time point ({n_times}), "
                f"got shape {flags.shape}"
            )
        return jnp.asarray(flags)

    if flags.size and not np.issubdtype(flags.dtype, np.integer):
        raise InvalidSchedule(f"Update flags must be booleans or row indices, got dtype {flags.dtype}")

    indices = flags.astype(int).ravel()
    bad = indices[(indices < 0) | (indices >= n_times)]
    if bad.size:
        raise InvalidSchedule(
            f"Update indices {bad.tolist()} out of range for {n_times} time points"
        )

    unique, counts = np.unique(indices, return_counts=True)
    if np.any(counts > 1):
        raise InvalidSchedule(
            f"Update indices {unique[counts > 1].tolist()} repeat; "
            "an integer 0/1 mask must be passed as booleans"
        )

    mask = np.zeros(n_times, dtype=bool)
    mask[indices] = True
    return jnp.asarray(mask)
