"""ExtractPlan package."""

from extractplan.exceptions import (
    ConfigurationError,
    ExtractionError,
    InvocationError,
    PackageError,
    RunnerClosedError,
    RunnerTimeoutError,
    SettingsError,
    UnknownModelPricingError,
    UnsupportedFormatError,
)
from extractplan.logging import configure_logging, get_logger
from extractplan.settings import Settings, get_settings

__version__ = "0.1.0"

# Initialize package logger at import time via `get_logger`.
logger = get_logger("extractplan")

__all__ = [
    "ConfigurationError",
    "ExtractionError",
    "InvocationError",
    "PackageError",
    "RunnerClosedError",
    "RunnerTimeoutError",
    "Settings",
    "SettingsError",
    "UnknownModelPricingError",
    "UnsupportedFormatError",
    "__version__",
    "configure_logging",
    "get_logger",
    "get_settings",
    "logger",
]
