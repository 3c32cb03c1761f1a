"""
Unit Tests for InputValidator
=============================
"""

import pytest

from src.core.validation.input_validator import InputValidator
from src.modules.shared.exceptions import ValidationError


@pytest.mark.unit
class TestIntegerValidation:
    @pytest.mark.parametrize("value, expected", [(5, 5), ("7", 7), (3.0, 3), (0, 0)])
    def test_accepts_whole_numbers(self, value, expected):
        assert InputValidator.validate_non_negative_integer(value, "xp_delta") == expected

    @pytest.mark.parametrize("value", [None, True, 2.5, "abc", -1])
    def test_rejects_bad_values(self, value):
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_non_negative_integer(value, "xp_delta")

        assert exc_info.value.field == "xp_delta"
        assert exc_info.value.error_code == "VALIDATION_XP_DELTA"

    def test_bounds(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_integer(11, "minutes", min_value=0, max_value=10)

        assert InputValidator.validate_positive_integer(1, "minutes") == 1


@pytest.mark.unit
class TestUserIdValidation:
    def test_accepts_uuid_and_strips_whitespace(self):
        user_id = " 0b9c5b52-6f0e-4a43-9a4f-2f6fbbd5f0a1 "

        assert InputValidator.validate_user_id(user_id) == user_id.strip()

    @pytest.mark.parametrize("value", [None, 123, "", "  ", "has space", "semi;colon", "x" * 65])
    def test_rejects_malformed(self, value):
        with pytest.raises(ValidationError):
            InputValidator.validate_user_id(value)


@pytest.mark.unit
class TestChoiceValidation:
    def test_case_insensitive(self):
        assert InputValidator.validate_choice(" Stopwatch ", "timer_mode", ["stopwatch", "countdown"]) == "stopwatch"

    def test_rejects_unknown(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_choice("pomodoro", "timer_mode", ["stopwatch", "countdown"])
