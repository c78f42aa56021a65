"""Pytest configuration and shared test utilities."""

import pytest
import numpy as np
import jax
import jax.numpy as jnp
from typing import List, Tuple, Union

# Path densities and Cholesky checks are compared at double precision
jax.config.update("jax_enable_x64", True)


# Default tolerances for float comparisons
RTOL_DEFAULT = 1e-6  # Relative tolerance
ATOL_DEFAULT = 1e-7  # Absolute tolerance


def assert_close(
    actual: Union[float, jnp.ndarray, np.ndarray],
    expected: Union[float, jnp.ndarray, np.ndarray],
    rtol: float = RTOL_DEFAULT,
    atol: float = ATOL_DEFAULT,
    msg: str = ""
):
    """Assert that two scalars are close within tolerance.

    Handles JAX arrays, NumPy arrays, and Python floats uniformly.

    Example:
        >>> assert_close(record.lna_log_lik, -2.7568)
    """
    actual_val = float(actual) if hasattr(actual, '__float__') else actual
    expected_val = float(expected) if hasattr(expected, '__float__') else expected

    assert actual_val == pytest.approx(expected_val, rel=rtol, abs=atol), (
        f"{msg}\nExpected: {expected_val}\nActual: {actual_val}\n"
        f"Diff: {abs(actual_val - expected_val)}"
    )


def assert_array_close(
    actual: Union[jnp.ndarray, np.ndarray],
    expected: Union[jnp.ndarray, np.ndarray],
    rtol: float = RTOL_DEFAULT,
    atol: float = ATOL_DEFAULT,
    msg: str = ""
):
    """Assert that two arrays are close within tolerance.

    Uses numpy.testing.assert_allclose for detailed error messages.
    """
    np.testing.assert_allclose(
        np.asarray(actual), np.asarray(expected),
        rtol=rtol, atol=atol,
        err_msg=msg
    )


class ConstantMomentIntegrator:
    """Moment integrator returning the same drift and diffusion every interval.

    Records ``(t_left, t_right, bound parameter row)`` for each call.
    """

    def __init__(self, drift, diffusion):
        self.drift = jnp.asarray(drift, dtype=float)
        self.diffusion = jnp.asarray(diffusion, dtype=float)
        n_events = self.drift.shape[0]
        self.n_odes = n_events + n_events * n_events
        self.calls: List[Tuple[float, float, np.ndarray]] = []

    def integrate(self, state, t_left, t_right, step, context):
        self.calls.append((float(t_left), float(t_right), np.asarray(context.current)))
        return jnp.concatenate([self.drift, self.diffusion.ravel()])


class DecayingResidualIntegrator:
    """Residual integrator whose conditional mean is ``decay`` times the carried residual.

    The drift half grows by ``drift_rate * (t_right - t_left)``.
    """

    def __init__(self, n_rates: int, decay: float = 0.0, drift_rate: float = 1.0):
        self.n_rates = n_rates
        self.n_odes = 2 * n_rates
        self.decay = decay
        self.drift_rate = drift_rate
        self.calls: List[Tuple[float, float, np.ndarray]] = []

    def integrate(self, state, t_left, t_right, step, context):
        self.calls.append((float(t_left), float(t_right), np.asarray(context.current)))
        drift = state[:self.n_rates] + self.drift_rate * (float(t_right) - float(t_left))
        residual = self.decay * state[self.n_rates:]
        return jnp.concatenate([drift, residual])


@pytest.fixture
def close():
    """Fixture providing assert_close function.

    Usage:
        def test_something(close):
            close(actual, expected)
    """
    return assert_close


@pytest.fixture
def array_close():
    """Fixture providing assert_array_close function.

    Usage:
        def test_something(array_close):
            array_close(actual_array, expected_array)
    """
    return assert_array_close


@pytest.fixture
def constant_moments():
    """Factory for ConstantMomentIntegrator stubs."""
    return ConstantMomentIntegrator


@pytest.fixture
def decaying_residual():
    """Factory for DecayingResidualIntegrator stubs."""
    return DecayingResidualIntegrator
