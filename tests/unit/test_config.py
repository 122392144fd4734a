"""
Unit tests for configuration loading
"""

from pathlib import Path

import pytest

from addon_insights.utils.config import BACKEND_URL_ENV, load_config

REPO_CONFIG = Path(__file__).resolve().parents[2] / "config" / "config.yaml"


class TestLoadConfig:
    """Test YAML settings with environment overrides"""

    @pytest.fixture(autouse=True)
    def clear_env(self, monkeypatch):
        monkeypatch.delenv(BACKEND_URL_ENV, raising=False)

    def test_defaults(self):
        settings = load_config(None)

        assert settings.backend_url == "http://localhost:5000"
        assert settings.timeout_seconds == 5.0
        assert settings.latency_budget_ms == 250
        assert settings.baseline_rate == 0.22
        assert settings.default_desired_lift == 3
        assert settings.stream_window == 50
        assert settings.error_window == 100

    def test_missing_file_uses_defaults(self, temp_directory):
        assert load_config(str(temp_directory / "absent.yaml")) == load_config(None)

    def test_repository_config_matches_defaults(self):
        assert load_config(str(REPO_CONFIG)) == load_config(None)

    def test_partial_override(self, temp_directory):
        path = temp_directory / "config.yaml"
        path.write_text(
            "backend:\n  base_url: http://recs.internal:5000/\n"
            "experiments:\n  baseline_rate: 0.3\n"
        )

        settings = load_config(str(path))

        assert settings.backend_url == "http://recs.internal:5000"
        assert settings.timeout_seconds == 5.0, "Unset keys keep their defaults"
        assert settings.baseline_rate == 0.3
        assert settings.default_desired_lift == 3

    def test_empty_file(self, temp_directory):
        path = temp_directory / "config.yaml"
        path.write_text("")

        assert load_config(str(path)) == load_config(None)

    def test_non_mapping_rejected(self, temp_directory):
        path = temp_directory / "config.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ValueError, match="mapping"):
            load_config(str(path))

    @pytest.mark.parametrize("budget", ["0", "-50", ".nan"])
    def test_non_positive_latency_budget_rejected(self, temp_directory, budget):
        path = temp_directory / "config.yaml"
        path.write_text(f"dashboard:\n  latency_budget_ms: {budget}\n")

        with pytest.raises(ValueError, match="latency_budget_ms"):
            load_config(str(path))

    def test_environment_overrides_backend(self, monkeypatch):
        monkeypatch.setenv(BACKEND_URL_ENV, "http://127.0.0.1:5001/")

        assert load_config(None).backend_url == "http://127.0.0.1:5001"
