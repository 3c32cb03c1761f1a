"""
Unit Tests for Config and the Exception Hierarchy
=================================================
"""

import pytest

from src.core.config.config import Config, Environment
from src.core.exceptions import ConfigurationError, ErrorSeverity
from src.modules.shared.exceptions import (
    CreditsExhaustedError,
    EmptySessionError,
    InvalidStateError,
    RateLimitedError,
    StoreUnavailableError,
    TextGenerationError,
    ValidationError,
    WriteConflictError,
    get_error_severity,
    is_transient_error,
    should_alert,
)


@pytest.fixture
def reload_config(monkeypatch):
    """Reload Config after the test so patched env vars do not leak."""
    yield monkeypatch
    monkeypatch.undo()
    Config.load()
    Config._validated = False


@pytest.mark.unit
class TestConfig:
    def test_testing_environment(self):
        assert Config.is_testing()
        assert Config.environment() is Environment.TESTING

    def test_progression_defaults(self):
        assert Config.XP_PER_STUDY_MINUTE == 2
        assert Config.XP_PER_LEVEL == 100
        assert Config.PROGRESSION_RETRY_MAX_ATTEMPTS == 5

    def test_env_override(self, reload_config):
        # Arrange
        reload_config.setenv("PROGRESSION_RETRY_MAX_ATTEMPTS", "8")

        # Act
        Config.load()

        # Assert
        assert Config.PROGRESSION_RETRY_MAX_ATTEMPTS == 8

    def test_out_of_range_value_falls_back_to_default(self, reload_config):
        reload_config.setenv("PROGRESSION_RETRY_MAX_ATTEMPTS", "0")

        Config.load()

        assert Config.PROGRESSION_RETRY_MAX_ATTEMPTS == 5
        assert "PROGRESSION_RETRY_MAX_ATTEMPTS" in Config.get_metrics().validation_errors

    def test_malformed_integer_falls_back_to_default(self, reload_config):
        reload_config.setenv("XP_PER_LEVEL", "lots")

        Config.load()

        assert Config.XP_PER_LEVEL == 100

    def test_validate_rejects_inverted_backoff(self, reload_config):
        # Arrange
        reload_config.setenv("PROGRESSION_RETRY_INITIAL_BACKOFF_MS", "900")
        reload_config.setenv("PROGRESSION_RETRY_MAX_BACKOFF_MS", "100")
        Config.load()
        Config._validated = False

        # Act & Assert
        with pytest.raises(ConfigurationError) as exc_info:
            Config.validate()

        assert exc_info.value.config_key == "PROGRESSION_RETRY_MAX_BACKOFF_MS"
        assert exc_info.value.severity is ErrorSeverity.CRITICAL

    def test_unknown_environment_defaults_to_development(self):
        assert Environment.from_string("moonbase") is Environment.DEVELOPMENT

    def test_summary_hides_credentials(self):
        summary = Config.get_config_summary()

        assert summary["database_scheme"].startswith("postgresql")
        assert "studytwin@" not in str(summary)


@pytest.mark.unit
class TestExceptions:
    def test_write_conflict_is_internal_and_retryable(self):
        error = WriteConflictError("u-1", 3)

        assert is_transient_error(error)
        assert error.severity is ErrorSeverity.DEBUG
        assert error.details == {"user_id": "u-1", "expected_version": 3}
        assert not should_alert(error)

    def test_store_unavailable_alerts(self):
        error = StoreUnavailableError("apply_xp", "too many concurrent updates", attempts=5)

        assert is_transient_error(error)
        assert should_alert(error)
        assert error.to_dict()["error_code"] == "STORE_UNAVAILABLE"
        assert error.to_dict()["details"]["attempts"] == 5

    def test_empty_session_is_not_retryable(self):
        error = EmptySessionError("countdown")

        assert not is_transient_error(error)
        assert get_error_severity(error) is ErrorSeverity.INFO
        assert error.error_code == "EMPTY_SESSION"

    def test_invalid_state_is_a_warning(self):
        error = InvalidStateError("u-1", 2, 250, 200)

        assert get_error_severity(error) is ErrorSeverity.WARNING
        assert error.details["current_xp"] == 250

    def test_validation_error_code(self):
        error = ValidationError("user_id", "Cannot be empty")

        assert error.error_code == "VALIDATION_USER_ID"
        assert "user_id" in str(error)

    def test_non_domain_errors(self):
        assert not is_transient_error(RuntimeError())
        assert get_error_severity(RuntimeError()) is ErrorSeverity.ERROR


@pytest.mark.unit
class TestTextGenerationErrors:
    def test_rate_limited_is_a_transient_warning(self):
        error = RateLimitedError("solve_doubt")

        assert isinstance(error, TextGenerationError)
        assert is_transient_error(error)
        assert get_error_severity(error) is ErrorSeverity.WARNING
        assert error.error_code == "TEXT_GENERATION_RATE_LIMITED"
        assert error.reason == "Rate limit exceeded"

    def test_credits_exhausted_alerts(self):
        error = CreditsExhaustedError("generate_notes")

        assert not is_transient_error(error)
        assert should_alert(error)
        assert get_error_severity(error) is ErrorSeverity.CRITICAL
        assert error.to_dict()["error_code"] == "TEXT_GENERATION_CREDITS_EXHAUSTED"

    def test_other_generation_failure(self):
        error = TextGenerationError("solve_doubt", "upstream 500")

        assert error.error_code == "TEXT_GENERATION_FAILED"
        assert error.details == {"operation": "solve_doubt", "reason": "upstream 500"}
        assert "upstream 500" in str(error)
