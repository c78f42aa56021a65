"""Tests for parameter schedules and parameter-matrix helpers."""

import pytest
import jax.numpy as jnp
import numpy as np
from pydantic import ValidationError

from lnapath import (
    ScheduleConfig,
    ParameterSchedule,
    insert_parameters,
    detect_update_points,
    update_mask,
    DimensionMismatch,
    InvalidSchedule,
)


class TestInsertParameters:
    """Tests for broadcasting a parameter vector into every row."""

    def test_leading_columns_replaced(self, array_close):
        pars = jnp.array([
            [0.0, 0.0, 990.0, 10.0, 1.0],
            [0.0, 0.0, 990.0, 10.0, 2.0],
        ])
        new = insert_parameters(pars, jnp.array([0.3, 0.1]))

        array_close(new[:, :2], [[0.3, 0.1], [0.3, 0.1]])
        array_close(new[:, 2:], pars[:, 2:])

    def test_input_not_modified(self):
        pars = jnp.zeros((3, 4))
        insert_parameters(pars, [1.0, 2.0])
        assert float(jnp.sum(pars)) == 0.0

    def test_vector_too_long(self):
        with pytest.raises(DimensionMismatch):
            insert_parameters(jnp.zeros((3, 2)), jnp.ones(3))

    def test_matrix_not_2d(self):
        with pytest.raises(DimensionMismatch):
            insert_parameters(jnp.zeros(4), jnp.ones(2))


class TestUpdatePoints:
    """Tests for change-point detection and flag normalization."""

    def test_first_row_always_flagged(self):
        pars = jnp.ones((4, 3))
        assert np.asarray(detect_update_points(pars)).tolist() == [True, False, False, False]

    def test_covariate_change_flagged(self):
        pars = jnp.array([
            [0.3, 1.0],
            [0.3, 1.0],
            [0.3, 2.0],
            [0.3, 2.0],
        ])
        assert np.asarray(detect_update_points(pars)).tolist() == [True, False, True, False]

    def test_mask_passthrough(self):
        mask = update_mask([True, False, True], 3)
        assert np.asarray(mask).tolist() == [True, False, True]

    def test_indices_to_mask(self):
        mask = update_mask([0, 2], 4)
        assert np.asarray(mask).tolist() == [True, False, True, False]

    def test_empty_indices(self):
        mask = update_mask([], 3)
        assert not bool(jnp.any(mask))

    def test_wrong_mask_length(self):
        with pytest.raises(InvalidSchedule):
            update_mask([True, False], 3)

    def test_index_out_of_range(self):
        with pytest.raises(InvalidSchedule, match="out of range"):
            update_mask([0, 5], 3)

    def test_negative_index(self):
        with pytest.raises(InvalidSchedule):
            update_mask([-1], 3)

    def test_integer_mask_rejected(self):
        """A 0/1 integer mask repeats indices instead of flagging rows."""
        with pytest.raises(InvalidSchedule, match="repeat"):
            update_mask([1, 0, 0, 1], 4)

    def test_integer_mask_as_booleans(self):
        mask = update_mask(np.array([1, 0, 0, 1]).astype(bool), 4)
        assert np.asarray(mask).tolist() == [True, False, False, True]


class TestScheduleConfig:
    """Tests for ScheduleConfig validation and conversion."""

    def test_basic(self):
        config = ScheduleConfig(
            times=[0.0, 1.0, 2.0],
            parameters=[[0.3, 0.1, 990.0, 10.0, 0.0]] * 3,
        )
        schedule = config.to_runtime()

        assert isinstance(schedule, ParameterSchedule)
        assert schedule.n_times == 3
        assert schedule.n_intervals == 2
        assert schedule.pars.shape == (3, 5)

    def test_single_row_tiled(self):
        config = ScheduleConfig(times=[0.0, 7.0, 14.0], parameters=[0.3, 0.1, 990.0])
        assert config.parameters.shape == (3, 3)

    def test_detected_mask(self):
        config = ScheduleConfig(
            times=[0.0, 1.0, 2.0],
            parameters=[[0.3, 1.0], [0.3, 1.0], [0.3, 0.5]],
        )
        schedule = config.to_runtime()
        assert [schedule.flagged(j) for j in range(3)] == [True, False, True]

    def test_explicit_indices(self):
        config = ScheduleConfig(
            times=[0.0, 1.0, 2.0],
            parameters=[0.3, 1.0],
            update_at=[0, 1],
        )
        schedule = config.to_runtime()
        assert [schedule.flagged(j) for j in range(3)] == [True, True, False]

    def test_explicit_bad_indices(self):
        config = ScheduleConfig(times=[0.0, 1.0], parameters=[0.3], update_at=[3])
        with pytest.raises(InvalidSchedule):
            config.to_runtime()

    def test_explicit_integer_mask_rejected(self):
        config = ScheduleConfig(
            times=[0.0, 1.0, 2.0, 3.0],
            parameters=[0.3, 1.0],
            update_at=[1, 0, 0, 1],
        )
        with pytest.raises(InvalidSchedule, match="repeat"):
            config.to_runtime()

    def test_single_time_point_rejected(self):
        with pytest.raises(ValidationError):
            ScheduleConfig(times=[0.0], parameters=[0.3])

    def test_non_increasing_rejected(self):
        with pytest.raises(ValidationError, match="strictly increasing"):
            ScheduleConfig(times=[0.0, 2.0, 2.0], parameters=[0.3])

    def test_row_count_mismatch(self):
        with pytest.raises(ValidationError):
            ScheduleConfig(times=[0.0, 1.0, 2.0], parameters=[[0.3], [0.2]])

    def test_bad_time_unit(self):
        with pytest.raises(ValidationError):
            ScheduleConfig(times=[0.0, 1.0], parameters=[0.3], time_unit="meter")


class TestParameterSchedule:
    """Tests for the runtime schedule struct."""

    def test_with_pars_keeps_grid(self, array_close):
        schedule = ScheduleConfig(times=[0.0, 1.0], parameters=[0.3, 1.0]).to_runtime()
        new = schedule.with_pars(jnp.array([[0.5, 1.0], [0.5, 1.0]]))

        array_close(new.times, schedule.times)
        array_close(new.row(1), [0.5, 1.0])
        array_close(schedule.row(1), [0.3, 1.0])
