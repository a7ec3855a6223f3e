import math

import pytest

from taskboard.config import TaskLimits
from taskboard.models import TaskStatus
from taskboard.validation import TaskValidator, normalize_description, normalize_title

from conftest import START_MS, FakeClock


@pytest.fixture()
def validator():
    return TaskValidator(clock=FakeClock())


@pytest.mark.parametrize("title", ["", "   ", "\t\n "])
def test_blank_titles_are_rejected(validator, title):
    result = validator.validate_title(title)
    assert not result.valid
    assert result.error == "Task title cannot be empty"


def test_title_length_limit_is_inclusive(validator):
    assert validator.validate_title("a" * 200).valid

    result = validator.validate_title("a" * 201)
    assert not result.valid
    assert result.error == "Task title cannot exceed 200 characters"


def test_title_length_counts_surrounding_whitespace(validator):
    assert not validator.validate_title(" " + "a" * 200).valid


def test_limits_come_from_configuration():
    validator = TaskValidator(TaskLimits(title_max_length=10, description_max_length=5))
    assert not validator.validate_title("eleven char").valid
    assert not validator.validate_description("toolong").valid
    assert "10 characters" in validator.validate_title("x" * 11).error


def test_description_rules(validator):
    assert validator.validate_description(None).valid
    assert validator.validate_description("").valid
    assert validator.validate_description("d" * 2000).valid

    result = validator.validate_description("d" * 2001)
    assert not result.valid
    assert result.error == "Task description cannot exceed 2000 characters"


def test_due_date_in_future_is_valid_without_warning(validator):
    result = validator.validate_due_date(START_MS + 1000)
    assert result.valid
    assert result.warning is None


def test_due_date_in_past_is_valid_with_warning(validator):
    result = validator.validate_due_date(START_MS - 1)
    assert result.valid
    assert result.warning == "Due date is in the past"


def test_missing_due_date_is_valid(validator):
    assert validator.validate_due_date(None).valid


@pytest.mark.parametrize("bad", [math.nan, math.inf, "tomorrow", True])
def test_non_numeric_due_dates_are_rejected(validator, bad):
    result = validator.validate_due_date(bad)
    assert not result.valid
    assert result.error == "Invalid due date timestamp"


def test_every_status_transition_is_allowed(validator):
    for current in TaskStatus:
        for new in TaskStatus:
            assert validator.validate_status_transition(current, new).valid


def test_normalize_title_trims_and_collapses_whitespace():
    assert normalize_title("  Buy   milk\tand \n eggs  ") == "Buy milk and eggs"


def test_normalize_description_only_trims():
    assert normalize_description("  line one\n\nline two  ") == "line one\n\nline two"
    assert normalize_description(None) is None


@pytest.mark.parametrize("bad", [START_MS + 0.5, 1e19, 2 ** 63, -(2 ** 63) - 1, 10 ** 400])
def test_fractional_and_out_of_range_due_dates_are_rejected(validator, bad):
    result = validator.validate_due_date(bad)
    assert not result.valid
    assert result.error == "Invalid due date timestamp"


def test_integral_float_due_date_is_valid(validator):
    assert validator.validate_due_date(float(START_MS + 1000)).valid
