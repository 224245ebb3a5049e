"""Tests for configuration validation."""

import pytest

from reliefengine.core.config import (
    EngineConfig,
    ProximityConfig,
    RetryConfig,
    ShelterConfig,
    validate_config,
)


class TestValidateConfig:
    """Tests for validate_config()."""

    def test_defaults_are_valid(self):
        result = validate_config(EngineConfig())

        assert result.valid is True
        assert result.errors == []

    def test_unknown_match_policy(self):
        result = validate_config(EngineConfig(match_policy="lottery"))

        assert result.valid is False
        assert result.critical_errors[0].field == "match_policy"
        assert "category_match" in result.critical_errors[0].message

    @pytest.mark.parametrize("threshold", [0, 1, -0.2, 1.5])
    def test_threshold_out_of_range(self, threshold):
        config = EngineConfig(shelter=ShelterConfig(limited_threshold=threshold))

        result = validate_config(config)

        assert result.valid is False
        assert result.critical_errors[0].field == "shelter.limited_threshold"

    def test_negative_decimals(self):
        config = EngineConfig(proximity=ProximityConfig(distance_decimals=-1))

        assert validate_config(config).valid is False

    def test_non_positive_radius(self):
        config = EngineConfig(proximity=ProximityConfig(
            request_radius_km=0, shelter_radius_km=-5,
        ))

        fields = [e.field for e in validate_config(config).critical_errors]

        assert fields == ["proximity.request_radius_km", "proximity.shelter_radius_km"]

    def test_zero_attempts(self):
        config = EngineConfig(retry=RetryConfig(max_attempts=0))

        assert validate_config(config).critical_errors[0].field == "retry.max_attempts"

    def test_negative_backoff(self):
        config = EngineConfig(retry=RetryConfig(backoff_seconds=-1))

        assert validate_config(config).valid is False

    def test_long_backoff_is_warning(self):
        config = EngineConfig(retry=RetryConfig(backoff_seconds=10))

        result = validate_config(config)

        assert result.valid is True
        assert len(result.warnings) == 1
        assert result.warnings[0].field == "retry.backoff_seconds"
