"""Parameter schedules: time grid, parameter matrix, and change points."""

from .config import ScheduleConfig
from .runtime import ParameterSchedule
from .kernel import insert_parameters, detect_update_points, update_mask

__all__ = [
    'ScheduleConfig',
    'ParameterSchedule',
    'insert_parameters',
    'detect_update_points',
    'update_mask',
]
