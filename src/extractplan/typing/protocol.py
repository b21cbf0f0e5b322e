"""Collaborator and runner interfaces."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from extractplan.typing.enums import RunnerState
    from extractplan.typing.models import PricingCall



class Invoker(Protocol):
    """Inference collaborator performing one blocking model call."""

    def invoke(
        self,
        *,
        prompt: str,
        model: str,
        options: dict[str, str],
        document: str,
    ) -> tuple[dict[str, Any], PricingCall | None]:
        """Run the prompt against a model and return parsed field values.

        Args:
            prompt: Rendered prompt text.
            model: Model identifier.
            options: Invocation options such as sampling temperature.
            document: Document payload.

        Returns:
            tuple[dict[str, Any], PricingCall | None]: Field values and optional usage.
        """


class PromptProvider(Protocol):
    """Template collaborator producing prompt text for a group."""

    def get_prompt(self, name: str, keys: list[str], document: str) -> str:
        """Return renderable prompt text.

        Args:
            name: Prompt template identifier.
            keys: Field names requested from the model.
            document: Document payload.

        Returns:
            str: Prompt text.
        """


class Runner(Protocol):
    """Scheduling interface shared by every concurrency backend."""

    @property
    def state(self) -> RunnerState:
        """Return the current session state."""

    @property
    def pending(self) -> int:
        """Return the number of operations not yet settled."""

    def go(self, operation: Callable[[], Awaitable[None]]) -> None:
        """Schedule one operation without blocking the caller.

        Args:
            operation: Zero-argument callable returning an awaitable.
        """

    async def wait(self) -> None:
        """Wait for every operation, raising the first error observed."""


class ActivityHost(Protocol):
    """Owner of non-deterministic work (network, clock, randomness)."""

    async def execute[T](self, fn: Callable[..., T], /, *args: Any) -> T:
        """Run ``fn(*args)`` outside the deterministic scheduling context.

        Args:
            fn: Callable performing external I/O.
            args: Positional arguments.

        Returns:
            T: Result of the call.
        """
