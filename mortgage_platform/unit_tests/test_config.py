"""
Configuration Tests
===================

Tests for environment-driven settings.
"""

import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from config import Settings, get_settings, get_solver_parameters


class TestSettings:
    """Tests for Settings defaults and overrides."""

    def test_defaults(self, monkeypatch):
        """
        Verify defaults when nothing is set.
        """
        for key in ("DEFAULT_CURRENCY", "USD_TO_PEN_RATE", "DEFAULT_DISCOUNT_RATE", "IRR_MAX_ITERATIONS"):
            monkeypatch.delenv(f"MORTGAGE_{key}", raising=False)

        settings = Settings()

        assert settings.default_currency == "PEN"
        assert settings.base_currency == "PEN"
        assert settings.usd_to_pen_rate == 3.75
        assert settings.default_discount_rate == 10.0
        assert settings.disgravamen_in_installment is True
        assert settings.irr_max_iterations == 200

    def test_environment_override(self, monkeypatch):
        """
        Verify MORTGAGE_ variables are read and typed.
        """
        monkeypatch.setenv("MORTGAGE_USD_TO_PEN_RATE", "3.80")
        monkeypatch.setenv("MORTGAGE_IRR_MAX_ITERATIONS", "500")
        monkeypatch.setenv("MORTGAGE_DISGRAVAMEN_IN_INSTALLMENT", "no")

        settings = Settings()

        assert settings.usd_to_pen_rate == 3.80
        assert settings.irr_max_iterations == 500
        assert settings.disgravamen_in_installment is False

    def test_invalid_value_falls_back(self, monkeypatch):
        """
        Verify unparseable numbers keep the default.
        """
        monkeypatch.setenv("MORTGAGE_IRR_MAX_ITERATIONS", "many")
        assert Settings().irr_max_iterations == 200

    def test_log_level_int(self, monkeypatch):
        """
        Verify level names map to logging constants.
        """
        monkeypatch.setenv("MORTGAGE_LOG_LEVEL", "debug")
        assert Settings().log_level_int == logging.DEBUG

        monkeypatch.setenv("MORTGAGE_LOG_LEVEL", "verbose")
        assert Settings().log_level_int == logging.INFO

    def test_configure_logging(self, monkeypatch):
        """
        Verify the MORTGAGE logger receives the configured level.
        """
        logger = logging.getLogger("MORTGAGE")
        previous = logger.level
        monkeypatch.setenv("MORTGAGE_LOG_LEVEL", "WARNING")
        try:
            Settings().configure_logging()
            assert logger.level == logging.WARNING
        finally:
            logger.setLevel(previous)

    def test_package_root(self):
        """
        Verify the package root holds the engine.
        """
        assert (Settings().package_root / "engine").is_dir()


class TestSettingsAccessors:
    """Tests for the cached accessors."""

    def test_get_settings_cached(self):
        """
        Verify the same instance is returned.
        """
        assert get_settings() is get_settings()

    def test_solver_parameters(self):
        """
        Verify solver keyword arguments.
        """
        params = get_solver_parameters()
        assert set(params) == {"initial_guess", "tolerance", "max_iterations"}
