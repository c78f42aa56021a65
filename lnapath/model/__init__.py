"""Compartmental models, parameter contexts and moment-ODE integrators.

This module provides configuration, runtime structures, and the diffrax
integrators that supply drift, diffusion and residual moments to the path
kernels.
"""

from .config import LNAModelConfig
from .runtime import LNAModelRuntime, ParameterContext
from .integrators import OdeIntegrator, MomentIntegrator, ResidualIntegrator
from .library import mass_action_sir, sir_parameter_row, SIR_PARAMETERS

__all__ = [
    'LNAModelConfig',
    'LNAModelRuntime',
    'ParameterContext',
    'OdeIntegrator',
    'MomentIntegrator',
    'ResidualIntegrator',
    'mass_action_sir',
    'sir_parameter_row',
    'SIR_PARAMETERS',
]
