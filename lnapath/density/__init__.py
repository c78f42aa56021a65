"""LNA log-density of existing paths under updated parameters."""

from .runtime import LNAPathRecord
from .kernel import DENSITY_STEP, path_density, path_density_with_diagnostics

__all__ = [
    'LNAPathRecord',
    'DENSITY_STEP',
    'path_density',
    'path_density_with_diagnostics',
]
