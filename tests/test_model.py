"""Tests for model configuration, parameter contexts and moment integrators."""

import pytest
import jax.numpy as jnp
import numpy as np
from pydantic import ValidationError

from lnapath import (
    LNAModelConfig,
    LNAModelRuntime,
    ParameterContext,
    OdeIntegrator,
    MomentIntegrator,
    ResidualIntegrator,
    mass_action_sir,
    sir_parameter_row,
    SIR_PARAMETERS,
    split_moments,
    symmetrize_upper,
)


def _si_rates(volumes, params):
    return jnp.stack([params[0] * volumes[0] * volumes[1]])


# beta, gamma, S0, I0, R0
SIR_ROW = jnp.array([0.001, 0.1, 990.0, 10.0, 0.0])


class TestLNAModelConfig:
    """Tests for LNAModelConfig validation."""

    def test_basic(self):
        config = LNAModelConfig(
            compartments=("S", "I"),
            events=("S2I",),
            stoichiometry=[[-1], [1]],
            rate_fn=_si_rates,
            init_state_offset=1,
        )
        assert config.stoichiometry.shape == (2, 1)
        assert config.solver == 'tsit5'

    def test_default_steps(self, close):
        config = mass_action_sir()
        close(config.sample_step[0], 0.001)
        close(config.density_step[0], 1.0)

    def test_step_units_converted(self, close):
        config = mass_action_sir(sample_step="1 hour")
        close(config.sample_step[0], 1.0 / 24.0)
        assert config.sample_step[1].dimension == "time"

    def test_non_positive_step_rejected(self):
        with pytest.raises(ValidationError):
            mass_action_sir(sample_step="0 day")

    def test_step_must_be_time(self):
        with pytest.raises(ValidationError):
            mass_action_sir(density_step="1 meter")

    def test_name_count_mismatch(self):
        with pytest.raises(ValidationError, match="compartment names"):
            LNAModelConfig(
                compartments=("S",),
                events=("S2I",),
                stoichiometry=[[-1], [1]],
                rate_fn=_si_rates,
                init_state_offset=1,
            )

    def test_duplicate_names(self):
        with pytest.raises(ValidationError, match="Duplicate"):
            LNAModelConfig(
                compartments=("S", "S"),
                events=("S2I",),
                stoichiometry=[[-1], [1]],
                rate_fn=_si_rates,
                init_state_offset=1,
            )

    def test_parameter_names_too_short(self):
        with pytest.raises(ValidationError, match="at least 3 columns"):
            LNAModelConfig(
                compartments=("S", "I"),
                events=("S2I",),
                stoichiometry=[[-1], [1]],
                rate_fn=_si_rates,
                init_state_offset=1,
                parameter_names=("beta", "S0"),
            )

    def test_stoichiometry_must_be_2d(self):
        with pytest.raises(ValidationError):
            LNAModelConfig(
                compartments=("S", "I"),
                events=("S2I",),
                stoichiometry=[-1, 1],
                rate_fn=_si_rates,
                init_state_offset=1,
            )

    def test_negative_offset(self):
        with pytest.raises(ValidationError):
            LNAModelConfig(
                compartments=("S", "I"),
                events=("S2I",),
                stoichiometry=[[-1], [1]],
                rate_fn=_si_rates,
                init_state_offset=-1,
            )

    def test_parameter_index(self):
        config = mass_action_sir()
        assert config.parameter_index("gamma") == 1
        assert config.parameter_index("S0") == config.init_state_offset
        with pytest.raises(KeyError):
            config.parameter_index("delta")


class TestLNAModelRuntime:
    """Tests for config -> runtime conversion."""

    def test_to_runtime(self):
        runtime = mass_action_sir(solver='dopri5').to_runtime()

        assert isinstance(runtime, LNAModelRuntime)
        assert runtime.n_compartments == 3
        assert runtime.n_events == 2
        assert runtime.solver_type == 'dopri5'
        assert runtime.events == ("S2I", "I2R")

    def test_steps_in_grid_units(self, close):
        runtime = mass_action_sir(sample_step="0.7 day", time_unit="week").to_runtime()
        close(runtime.days_per_unit, 7.0)
        close(runtime.sample_step_in_grid(), 0.1)
        close(runtime.density_step_in_grid(), 1.0 / 7.0)


class TestParameterContext:
    """Tests for the explicit parameter binding."""

    def test_unbound_raises(self):
        context = ParameterContext()
        assert not context.is_bound
        with pytest.raises(RuntimeError):
            context.current

    def test_set_and_reset(self, array_close):
        context = ParameterContext()
        context.set([1.0, 2.0])
        context.set([3.0, 4.0])

        assert context.is_bound
        assert context.update_count == 2
        array_close(context.current, [3.0, 4.0])

        context.reset()
        assert not context.is_bound
        assert context.update_count == 0


class TestMomentIntegrator:
    """Tests for the diffrax-backed restarting moment system."""

    def test_protocol(self):
        integrator = MomentIntegrator(mass_action_sir().to_runtime())
        assert isinstance(integrator, OdeIntegrator)
        assert integrator.n_odes == 6

    def test_short_interval_matches_initial_rates(self, close):
        """Over a short interval drift ~ h/2 dt and diffusion ~ diag(h) dt."""
        runtime = mass_action_sir(solver='dopri5').to_runtime()
        integrator = MomentIntegrator(runtime)
        context = ParameterContext()
        context.set(SIR_ROW)

        dt = 0.01
        moments = integrator.integrate(jnp.zeros(6), 0.0, dt, 0.001, context)
        drift, diffusion = split_moments(moments, 2)

        hazards = np.array([0.001 * 990.0 * 10.0, 0.1 * 10.0])
        close(drift[0], 0.5 * hazards[0] * dt, rtol=0.05)
        close(drift[1], 0.5 * hazards[1] * dt, rtol=0.05)
        close(diffusion[0, 0], hazards[0] * dt, rtol=0.05)
        close(diffusion[1, 1], hazards[1] * dt, rtol=0.05)

    def test_unit_interval_positive_definite(self):
        runtime = mass_action_sir(sample_step="0.05 day").to_runtime()
        integrator = MomentIntegrator(runtime)
        context = ParameterContext()
        context.set(SIR_ROW)

        moments = integrator.integrate(jnp.zeros(6), 0.0, 1.0, 0.05, context)
        drift, diffusion = split_moments(moments, 2)
        sym = np.asarray(symmetrize_upper(diffusion))

        assert np.all(np.asarray(drift) > 0)
        np.testing.assert_allclose(np.asarray(diffusion), np.asarray(diffusion).T, rtol=1e-5, atol=1e-10)
        assert np.all(np.linalg.eigvalsh(sym) > 0)

    def test_euler_solver(self):
        runtime = mass_action_sir(solver='euler').to_runtime()
        integrator = MomentIntegrator(runtime)
        context = ParameterContext()
        context.set(SIR_ROW)

        moments = integrator.integrate(jnp.zeros(6), 0.0, 0.5, 0.01, context)
        assert bool(jnp.all(jnp.isfinite(moments)))

    def test_deterministic(self):
        integrator = MomentIntegrator(mass_action_sir(sample_step="0.05 day").to_runtime())
        context = ParameterContext()
        context.set(SIR_ROW)

        first = integrator.integrate(jnp.zeros(6), 0.0, 1.0, 0.05, context)
        second = integrator.integrate(jnp.zeros(6), 0.0, 1.0, 0.05, context)
        assert np.array_equal(np.asarray(first), np.asarray(second))

    def test_requires_bound_context(self):
        integrator = MomentIntegrator(mass_action_sir().to_runtime())
        with pytest.raises(RuntimeError):
            integrator.integrate(jnp.zeros(6), 0.0, 1.0, 0.1, ParameterContext())


class TestResidualIntegrator:
    """Tests for the carried drift/residual system."""

    def test_zero_residual_stays_zero(self):
        runtime = mass_action_sir().to_runtime()
        integrator = ResidualIntegrator(runtime)
        context = ParameterContext()
        context.set(SIR_ROW)

        state = integrator.integrate(jnp.zeros(4), 0.0, 1.0, 1.0, context)

        assert integrator.n_odes == 4
        assert np.all(np.asarray(state[:2]) > 0)
        np.testing.assert_allclose(np.asarray(state[2:]), 0.0, atol=1e-12)

    def test_drift_matches_moment_system(self, array_close):
        """Both systems share the same drift equation."""
        runtime = mass_action_sir(solver='dopri5').to_runtime()
        context = ParameterContext()
        context.set(SIR_ROW)

        moments = MomentIntegrator(runtime).integrate(jnp.zeros(6), 0.0, 1.0, 0.05, context)
        residual = ResidualIntegrator(runtime).integrate(jnp.zeros(4), 0.0, 1.0, 0.05, context)
        array_close(residual[:2], moments[:2], rtol=1e-4)


class TestLibrary:
    """Tests for the ready-made SIR model."""

    def test_sir_layout(self):
        config = mass_action_sir()
        assert config.parameter_names == SIR_PARAMETERS
        assert config.init_state_offset == 2
        np.testing.assert_array_equal(
            np.asarray(config.stoichiometry), [[-1, 0], [1, -1], [0, 1]]
        )

    def test_frequency_dependent_rates(self, array_close):
        config = mass_action_sir(frequency_dependent=True)
        hazards = config.rate_fn(jnp.array([900.0, 100.0, 0.0]), jnp.array([0.5, 0.1]))
        array_close(hazards, [0.5 * 900.0 * 100.0 / 1000.0, 10.0])

    def test_parameter_row_converts_rates(self, close, array_close):
        row = sir_parameter_row("0.7 / week", 0.1, [990, 10, 0], covariates=[1.5])
        close(row[0], 0.1)
        close(row[1], 0.1)
        array_close(row[2:], [990.0, 10.0, 0.0, 1.5])

    def test_parameter_row_weekly_grid(self, close):
        row = sir_parameter_row("0.1 / day", "0.1 / day", [1, 1, 0], time_unit="week")
        close(row[0], 0.7)
