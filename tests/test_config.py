"""
Tests for environment configuration
"""

import pytest

from config import Config
from exceptions import ConfigurationError


class TestValidation:
    def test_defaults_are_valid(self):
        settings = Config().landscape_settings()
        assert settings.min_voters == 20
        assert settings.min_statements == 6

    @pytest.mark.parametrize("key,value", [
        ("LANDSCAPE_MIN_VOTERS", "2"),
        ("LANDSCAPE_COARSE_MAX_GROUPS", "11"),
        ("LANDSCAPE_BATCH_SIZE", "0"),
        ("LANDSCAPE_FINE_K_MENU", "1,20"),
    ])
    def test_out_of_range_value(self, monkeypatch, key, value):
        monkeypatch.setenv(key, value)
        with pytest.raises(ConfigurationError) as exc_info:
            Config()
        assert exc_info.value.config_key == key
        assert not exc_info.value.is_retryable

    def test_target_groups_above_cap(self, monkeypatch):
        monkeypatch.setenv("LANDSCAPE_COARSE_MAX_GROUPS", "3")
        monkeypatch.setenv("LANDSCAPE_COARSE_TARGET_GROUPS", "4")
        with pytest.raises(ConfigurationError) as exc_info:
            Config()
        assert exc_info.value.config_key == "LANDSCAPE_COARSE_TARGET_GROUPS"
