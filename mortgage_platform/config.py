"""
Mortgage Platform Configuration
===============================

Centralized configuration management using environment variables with sensible
defaults.

This module provides a singleton ``Settings`` instance that loads configuration
from environment variables prefixed with ``MORTGAGE_``. All settings have
defaults suitable for local development. The engine itself never reads these
settings; callers turn them into explicit defaults with
``SimulationDefaults.from_settings()``.

Environment Variables
---------------------
MORTGAGE_LOG_LEVEL : str
    Logging level (DEBUG, INFO, WARNING, ERROR).
MORTGAGE_DEFAULT_CURRENCY : str
    Working currency when a request does not name one (default: "PEN").
MORTGAGE_USD_TO_PEN_RATE : float
    Fixed soles-per-dollar exchange rate (default: 3.75).
MORTGAGE_DEFAULT_DISCOUNT_RATE : float
    Annual discount rate for NPV, in percent (default: 10).

Example
-------
Using environment variables::

    export MORTGAGE_LOG_LEVEL=DEBUG
    export MORTGAGE_USD_TO_PEN_RATE=3.80

Accessing settings in code::

    from mortgage_platform.config import settings
    print(f"Discounting at {settings.default_discount_rate}%")
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

# Determine the package root directory
_PACKAGE_ROOT = Path(__file__).resolve().parent


def _get_env(key: str, default: Any, value_type: type = str) -> Any:
    """
    Get an environment variable with type conversion.

    Parameters
    ----------
    key : str
        Environment variable name (will be prefixed with MORTGAGE_).
    default : Any
        Default value if not set.
    value_type : type
        Type to convert to (str, int, float, bool).

    Returns
    -------
    Any
        The environment variable value converted to the specified type.
    """
    env_name = f"MORTGAGE_{key.upper()}"
    env_value = os.environ.get(env_name)

    if env_value is None:
        return default

    try:
        if value_type == bool:
            return env_value.lower() in ("true", "1", "yes", "on")
        elif value_type == int:
            return int(env_value)
        elif value_type == float:
            return float(env_value)
        else:
            return env_value
    except (ValueError, TypeError):
        return default


class Settings:
    """
    Application configuration loaded from environment variables.

    All settings have sensible defaults for local development. In production,
    override via environment variables prefixed with ``MORTGAGE_``.

    Example
    -------
    >>> from mortgage_platform.config import settings
    >>> print(f"Base currency: {settings.base_currency}")
    """

    def __init__(self) -> None:
        """Initialize settings from environment variables."""
        # =====================================================================
        # Logging Configuration
        # =====================================================================
        self.log_level: str = _get_env("LOG_LEVEL", "INFO", str)
        self.log_format: str = _get_env("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s", str)

        # =====================================================================
        # Currency
        # =====================================================================
        self.default_currency: str = _get_env("DEFAULT_CURRENCY", "PEN", str)
        self.base_currency: str = _get_env("BASE_CURRENCY", "PEN", str)
        self.usd_to_pen_rate: float = _get_env("USD_TO_PEN_RATE", 3.75, float)

        # =====================================================================
        # Simulation Defaults
        # =====================================================================
        self.default_discount_rate: float = _get_env("DEFAULT_DISCOUNT_RATE", 10.0, float)
        self.default_disgravamen_rate: float = _get_env("DEFAULT_DISGRAVAMEN_RATE", 0.00049, float)
        self.disgravamen_in_installment: bool = _get_env("DISGRAVAMEN_IN_INSTALLMENT", True, bool)

        # =====================================================================
        # IRR / TCEA Solver
        # =====================================================================
        self.irr_initial_guess: float = _get_env("IRR_INITIAL_GUESS", 0.01, float)
        self.irr_tolerance: float = _get_env("IRR_TOLERANCE", 1e-12, float)
        self.irr_max_iterations: int = _get_env("IRR_MAX_ITERATIONS", 200, int)

    @property
    def package_root(self) -> Path:
        """Return the package root directory."""
        return _PACKAGE_ROOT

    @property
    def log_level_int(self) -> int:
        """Return the log level as an integer constant."""
        return getattr(logging, self.log_level.upper(), logging.INFO)

    def configure_logging(self) -> None:
        """
        Configure application logging based on settings.

        Sets up the root logger with the configured level and format.
        """
        logging.basicConfig(
            level=self.log_level_int,
            format=self.log_format,
        )
        logging.getLogger("MORTGAGE").setLevel(self.log_level_int)


@lru_cache()
def get_settings() -> Settings:
    """
    Return the cached application settings instance.

    This function uses LRU caching to ensure settings are loaded only once
    and reused throughout the application lifetime.

    Returns
    -------
    Settings
        Application settings instance.

    Example
    -------
    >>> settings = get_settings()
    >>> print(settings.irr_max_iterations)
    200
    """
    return Settings()


# Module-level singleton for convenience
settings = get_settings()


def get_solver_parameters() -> Dict[str, Any]:
    """
    Return the IRR/TCEA root-finding parameters as a dictionary.

    Returns
    -------
    dict
        Keyword arguments accepted by ``IndicatorCalculator``.

    Example
    -------
    >>> params = get_solver_parameters()
    >>> print(params["max_iterations"])
    200
    """
    return {
        "initial_guess": settings.irr_initial_guess,
        "tolerance": settings.irr_tolerance,
        "max_iterations": settings.irr_max_iterations,
    }
