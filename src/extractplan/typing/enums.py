"""Project enums."""

from __future__ import annotations

from enum import StrEnum

from extractplan.exceptions import UnsupportedFormatError


class _EnumMixin(StrEnum):
    """Shared conversion helpers for user-facing enums."""

    @classmethod
    def from_str(cls, value: str) -> _EnumMixin:
        """Parse enum from string.

        Args:
            value: Raw string value.

        Raises:
            ValueError: If the value is not supported.

        Returns:
            _EnumMixin: Parsed enum value.
        """
        try:
            return cls(value)
        except ValueError as exc:
            supported = ", ".join(member.value for member in cls)
            message = f"Unsupported {cls.__name__} value '{value}'. Expected one of: {supported}"
            raise ValueError(message) from exc

    def to_str(self) -> str:
        """Return string representation.

        Returns:
            str: Enum string value.
        """
        return self.value


class PlanNodeType(_EnumMixin):
    """Operation represented by a plan node."""

    SCHEMA_ANALYSIS = "schema_analysis"
    PROMPT_CALL = "prompt_call"
    MERGE = "merge"
    TRANSFORM = "transform"


class RenderFormat(_EnumMixin):
    """Supported plan output formats."""

    TEXT = "text"
    JSON = "json"
    DOT = "dot"
    HTML = "html"

    @classmethod
    def from_str(cls, value: str) -> RenderFormat:
        """Parse a render format.

        Args:
            value: Raw format name.

        Raises:
            UnsupportedFormatError: If the format is unknown.

        Returns:
            RenderFormat: Parsed format.
        """
        try:
            return cls(value.lower())
        except ValueError as exc:
            raise UnsupportedFormatError(message="Unsupported render format", value=value) from exc


class PricingPolicy(_EnumMixin):
    """How a missing pricing entry is handled."""

    ERROR = "error"
    UNPRICED = "unpriced"


class RunnerBackend(_EnumMixin):
    """Concurrency backend used to dispatch group calls."""

    THREAD = "thread"
    COROUTINE = "coroutine"


class RunnerState(_EnumMixin):
    """Lifecycle of a runner session."""

    IDLE = "idle"
    DISPATCHING = "dispatching"
    DRAINING = "draining"
    DONE = "done"
    FAILED = "failed"


class TokenBasis(_EnumMixin):
    """Text measure used for token estimation."""

    CHARS = "chars"
    WORDS = "words"
