"""Inference collaborators."""

from extractplan.backends.openai_invoker import OpenAIInvoker, completion_params
from extractplan.typing.protocol import Invoker, PromptProvider

__all__ = [
    "Invoker",
    "OpenAIInvoker",
    "PromptProvider",
    "completion_params",
]
