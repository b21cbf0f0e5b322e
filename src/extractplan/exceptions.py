"""Package exceptions."""

from __future__ import annotations

from dataclasses import dataclass


class PackageError(Exception):
    """Root exception for the package."""


@dataclass(frozen=True)
class SettingsError(PackageError):
    """Raised when settings cannot be loaded or validated."""

    message: str = "Failed to load settings"
    exc: BaseException | None = None

    def __str__(self) -> str:
        """Return error message payload."""
        return f"{self.message}: {self.exc}" if self.exc else self.message


@dataclass(frozen=True)
class ConfigurationError(PackageError):
    """Raised when a schema, alias or render request is misconfigured."""

    message: str

    def __str__(self) -> str:
        """Return error message payload."""
        return self.message


@dataclass(frozen=True)
class UnsupportedFormatError(ConfigurationError):
    """Raised when a render format is not supported."""

    value: str = ""

    def __str__(self) -> str:
        """Return error message payload."""
        return f"{self.message}: {self.value}" if self.value else self.message


@dataclass(frozen=True)
class UnknownModelPricingError(PackageError):
    """Raised when real cost is requested for a model missing from the pricing table."""

    model: str
    message: str = "No pricing entry for model"

    def __str__(self) -> str:
        """Return error message payload."""
        return f"{self.message} '{self.model}'"


@dataclass(frozen=True)
class RunnerTimeoutError(PackageError):
    """Raised when a runner session exceeds its timeout."""

    timeout: float
    pending: int = 0
    message: str = "Runner session timed out"

    def __str__(self) -> str:
        """Return error message payload."""
        return f"{self.message} after {self.timeout}s ({self.pending} operation(s) still pending)"


@dataclass(frozen=True)
class InvocationError(PackageError):
    """Raised when the inference collaborator fails."""

    message: str

    def __str__(self) -> str:
        """Return error message payload."""
        return self.message


@dataclass(frozen=True)
class ExtractionError(PackageError):
    """Raised when extraction orchestration fails."""

    message: str

    def __str__(self) -> str:
        """Return error message payload."""
        return self.message


@dataclass(frozen=True)
class RunnerClosedError(PackageError):
    """Raised when an operation is scheduled on a runner whose session has ended."""

    message: str = "Runner session is closed; create a new runner per extraction pass"

    def __str__(self) -> str:
        """Return error message payload."""
        return self.message
