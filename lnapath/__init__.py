"""lnapath: Linear Noise Approximation paths for compartmental epidemic models."""

from .units import UnitManager, UnitSpec, QuantityInput
from .fields import quantity_field
from .runtime import QuantityNode, tree_info
from .errors import LNAError, NumericalInstability, DimensionMismatch, InvalidSchedule
from .bridge import (
    split_moments,
    symmetrize_upper,
    lower_cholesky,
    affine_log_increment,
    natural_increment,
    clamp_nonnegative,
    mvn_logpdf,
    log_increments,
)
from .schedule import (
    ScheduleConfig,
    ParameterSchedule,
    insert_parameters,
    detect_update_points,
    update_mask,
)
from .model import (
    LNAModelConfig,
    LNAModelRuntime,
    ParameterContext,
    OdeIntegrator,
    MomentIntegrator,
    ResidualIntegrator,
    mass_action_sir,
    sir_parameter_row,
    SIR_PARAMETERS,
)
from .sampler import (
    LNAPath,
    draw_perturbations,
    sample_path,
    sample_path_with_diagnostics,
)
from .density import (
    LNAPathRecord,
    path_density,
    path_density_with_diagnostics,
)
from .adapters import LNAAdapter

__all__ = [
    # Units
    'UnitManager',
    'UnitSpec',
    'QuantityInput',
    # Fields
    'quantity_field',
    # Runtime structures
    'QuantityNode',
    'tree_info',
    # Errors
    'LNAError',
    'NumericalInstability',
    'DimensionMismatch',
    'InvalidSchedule',
    # Shared transforms
    'split_moments',
    'symmetrize_upper',
    'lower_cholesky',
    'affine_log_increment',
    'natural_increment',
    'clamp_nonnegative',
    'mvn_logpdf',
    'log_increments',
    # Schedule
    'ScheduleConfig',
    'ParameterSchedule',
    'insert_parameters',
    'detect_update_points',
    'update_mask',
    # Model
    'LNAModelConfig',
    'LNAModelRuntime',
    'ParameterContext',
    'OdeIntegrator',
    'MomentIntegrator',
    'ResidualIntegrator',
    'mass_action_sir',
    'sir_parameter_row',
    'SIR_PARAMETERS',
    # Sampler
    'LNAPath',
    'draw_perturbations',
    'sample_path',
    'sample_path_with_diagnostics',
    # Density
    'LNAPathRecord',
    'path_density',
    'path_density_with_diagnostics',
    # Adapters
    'LNAAdapter',
]

__version__ = "0.1.0"
