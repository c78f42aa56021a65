"""High-level adapter class for stateful LNA workflows.

The adapter wraps the low-level kernels with a stateful API: it owns the
model and schedule runtimes, both diffrax integrators, a private parameter
context and a PRNG key, so an MCMC loop only has to call ``propose`` and
``density``.
"""

from __future__ import annotations

from typing import Any, Optional, Tuple

import numpy as np
import jax
import jax.numpy as jnp

from .model.config import LNAModelConfig
from .model.integrators import MomentIntegrator, ResidualIntegrator
from .model.runtime import ParameterContext
from .schedule.config import ScheduleConfig
from .schedule.kernel import insert_parameters
from .sampler.kernel import sample_path, sample_path_with_diagnostics
from .sampler.runtime import LNAPath
from .density.kernel import path_density
from .density.runtime import LNAPathRecord
from .units import UnitManager


__all__ = [
    'LNAAdapter',
]


class LNAAdapter:
    """High-level adapter for LNA path proposals and densities.

    For JAX power users, direct access to ``.runtime``, ``.schedule`` and the
    integrators is provided for calling the kernels directly.

    Example:
        >>> model = mass_action_sir(sample_step="0.01 day")
        >>> schedule = ScheduleConfig(
        ...     times=[0.0, 1.0, 2.0, 3.0],
        ...     parameters=[0.001, 0.1, 990.0, 10.0, 0.0],
        ... )
        >>> adapter = LNAAdapter(model, schedule, seed=42)
        >>> proposal = adapter.propose()
        >>> proposal.path.shape
        (3, 4)

        # JAX power users can call the kernels directly:
        >>> path = sample_path(adapter.schedule, 2, adapter.runtime.stoichiometry,
        ...                    adapter.moment_integrator, ParameterContext(),
        ...                    proposal.draws)

    Args:
        model_config: LNAModelConfig describing the compartmental model
        schedule_config: ScheduleConfig with the time grid and parameter rows
        check_units: Whether to check the model and schedule time units agree
        seed: Random seed for perturbation draws (default: 0)

    Attributes:
        model_config: The LNAModelConfig used to build the runtime
        schedule_config: The ScheduleConfig used to build the schedule
        runtime: JAX-ready LNAModelRuntime
        schedule: Current ParameterSchedule
        moment_integrator: Integrator used for proposals
        residual_integrator: Integrator used for densities
        context: Parameter context owned by this adapter
        key: Current PRNG key
    """

    def __init__(
        self,
        model_config: LNAModelConfig,
        schedule_config: ScheduleConfig,
        *,
        check_units: bool = True,
        seed: int = 0
    ):
        """Initialize the LNA adapter.

        Raises:
            ValueError: If the model and schedule use different time units
        """
        self.model_config = model_config
        self.schedule_config = schedule_config

        if check_units:
            _check_time_units(model_config.time_unit, schedule_config.time_unit)

        self.runtime = model_config.to_runtime()
        self.schedule = schedule_config.to_runtime()

        # Rate processes are the events of the model
        self.flow_matrix = self.runtime.stoichiometry.T

        self.moment_integrator = MomentIntegrator(self.runtime)
        self.residual_integrator = ResidualIntegrator(self.runtime)
        self.context = ParameterContext()

        self.key = jax.random.PRNGKey(seed)
        self.last_path: Optional[LNAPath] = None
        self.proposal_count = 0

    def _next_key(self, draws) -> Optional[jax.Array]:
        if draws is not None:
            return None
        self.key, subkey = jax.random.split(self.key)
        return subkey

    def propose(self, draws: Optional[Any] = None) -> LNAPath:
        """Propose a new path (stateful).

        Args:
            draws: Optional (E, n-1) perturbations; drawn from the adapter's
                key when omitted

        Returns:
            LNAPath with the (E+1, n) path and the perturbations used
        """
        subkey = self._next_key(draws)
        path = sample_path(
            self.schedule,
            self.runtime.init_state_offset,
            self.runtime.stoichiometry,
            self.moment_integrator,
            self.context,
            None if draws is None else jnp.asarray(draws),
            key=subkey,
            step=self.runtime.sample_step_in_grid(),
        )
        self.last_path = path
        self.proposal_count += 1
        return path

    def propose_with_diagnostics(
        self,
        draws: Optional[Any] = None
    ) -> Tuple[LNAPath, dict]:
        """Propose a path with diagnostic information.

        Like propose() but also returns intermediate values for debugging.

        Returns:
            Tuple of (path, diagnostics_dict)
        """
        subkey = self._next_key(draws)
        path, diagnostics = sample_path_with_diagnostics(
            self.schedule,
            self.runtime.init_state_offset,
            self.runtime.stoichiometry,
            self.moment_integrator,
            self.context,
            None if draws is None else jnp.asarray(draws),
            key=subkey,
            step=self.runtime.sample_step_in_grid(),
        )
        self.last_path = path
        self.proposal_count += 1
        return path, diagnostics

    def density(self, record: LNAPathRecord) -> Tuple[LNAPathRecord, float]:
        """Score a path record under the current parameters.

        Args:
            record: Path record (time-major arrays, see LNAPathRecord)

        Returns:
            Tuple of (updated_record, lna_log_lik)
        """
        updated, lna_log_lik = path_density(
            record,
            self.schedule,
            self.flow_matrix,
            self.residual_integrator,
            self.context,
            step=self.runtime.density_step_in_grid(),
        )
        return updated, float(lna_log_lik)

    def update_parameters(self, parameters) -> None:
        """Insert a new parameter vector into the leading columns of every row.

        Update flags are left as they are.
        """
        pars = insert_parameters(self.schedule.pars, parameters)
        self.schedule = self.schedule.with_pars(pars)

    def set_parameter(self, name: str, value: float) -> None:
        """Set one named parameter in every row of the schedule.

        Raises:
            KeyError: If the model has no parameter of that name
        """
        column = self.model_config.parameter_index(name)
        pars = self.schedule.pars.at[:, column].set(float(value))
        self.schedule = self.schedule.with_pars(pars)

    def reset(self, seed: Optional[int] = None):
        """Restore the configured schedule and clear proposal state.

        Args:
            seed: New random seed (optional, keeps current key if None)
        """
        self.schedule = self.schedule_config.to_runtime()
        self.context.reset()
        self.last_path = None
        self.proposal_count = 0

        if seed is not None:
            self.key = jax.random.PRNGKey(seed)

    def get_state(self) -> dict:
        """Get current state as dictionary of Python types.

        Returns:
            Dictionary with state values including:
            - proposal_count: Proposals made since the last reset
            - n_times: Number of time points
            - n_events: Number of event types
            - initial_parameters: Parameter row bound at the start of a path
            - context_bound: Whether the context holds a parameter row
            - context_updates: Bindings made by the most recent call
            - last_incidence: Final cumulative incidence of the last proposal
        """
        last_incidence = None
        if self.last_path is not None:
            last_incidence = np.asarray(self.last_path.incidence[:, -1]).tolist()

        return {
            'proposal_count': self.proposal_count,
            'n_times': self.schedule.n_times,
            'n_events': self.runtime.n_events,
            'initial_parameters': np.asarray(self.schedule.row(0)).tolist(),
            'context_bound': self.context.is_bound,
            'context_updates': self.context.update_count,
            'last_incidence': last_incidence,
        }


def _check_time_units(model_unit: str, schedule_unit: str) -> None:
    manager = UnitManager.instance()
    model_days, _ = manager.to_canonical(manager.ensure_quantity(f"1 {model_unit}"), "time")
    schedule_days, _ = manager.to_canonical(manager.ensure_quantity(f"1 {schedule_unit}"), "time")
    if not np.isclose(model_days, schedule_days):
        raise ValueError(
            f"Unit validation failed: model runs on {model_unit!r} but the "
            f"schedule grid is in {schedule_unit!r}"
        )
