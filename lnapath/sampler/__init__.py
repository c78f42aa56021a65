"""Forward proposal of LNA paths from standard-normal perturbations."""

from .runtime import LNAPath
from .kernel import (
    SAMPLE_STEP,
    draw_perturbations,
    sample_path,
    sample_path_with_diagnostics,
)

__all__ = [
    'LNAPath',
    'SAMPLE_STEP',
    'draw_perturbations',
    'sample_path',
    'sample_path_with_diagnostics',
]
