"""OpenAI-compatible inference collaborator."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import openai

from extractplan.exceptions import InvocationError
from extractplan.logging import get_logger
from extractplan.settings import build_httpx_client
from extractplan.typing.models import PricingCall

if TYPE_CHECKING:
    from collections.abc import Callable

    from extractplan.settings import Settings

logger = get_logger(__name__)

SYSTEM_MESSAGE = "You extract structured data from documents and answer with a single JSON object."

# option name -> (chat completion parameter, converter)
_OPTION_PARAMS: dict[str, tuple[str, Callable[[str], Any]]] = {
    "temperature": ("temperature", float),
    "top_p": ("top_p", float),
    "topP": ("top_p", float),
    "max_tokens": ("max_tokens", int),
    "maxTokens": ("max_tokens", int),
    "seed": ("seed", int),
    "presence_penalty": ("presence_penalty", float),
    "frequency_penalty": ("frequency_penalty", float),
}


def completion_params(options: dict[str, str]) -> dict[str, Any]:
    """Translate group options into chat completion parameters.

    Args:
        options (dict[str, str]): Group options.

    Raises:
        InvocationError: If an option value cannot be converted.

    Returns:
        dict[str, Any]: Request parameters; unsupported options are dropped.
    """
    params: dict[str, Any] = {}
    for key, raw_value in options.items():
        mapping = _OPTION_PARAMS.get(key)
        if mapping is None:
            logger.debug("Ignoring unsupported invocation option", extra={"option": key})
            continue
        param, convert = mapping
        try:
            params[param] = convert(raw_value)
        except ValueError as exc:
            raise InvocationError(message=f"Invalid value for option '{key}': {raw_value!r}") from exc
    return params


class OpenAIInvoker:
    """Invoke chat completions with JSON responses against an OpenAI-compatible endpoint."""

    def __init__(self, settings: Settings, *, client: openai.OpenAI | None = None) -> None:
        """Initialize invoker.

        Args:
            settings (Settings): Runtime settings.
            client (openai.OpenAI | None): Preconfigured client, built from settings when omitted.
        """
        self._settings = settings
        self._client = client

    def _get_client(self) -> openai.OpenAI:
        if self._client is None:
            if not self._settings.openai_api_key:
                raise InvocationError(message="OPENAI_API_KEY is required for the OpenAI invoker")
            self._client = openai.OpenAI(
                api_key=self._settings.openai_api_key,
                base_url=self._settings.openai_base_url,
                http_client=build_httpx_client(self._settings),
            )
        return self._client

    def invoke(
        self,
        *,
        prompt: str,
        model: str,
        options: dict[str, str],
        document: str,
    ) -> tuple[dict[str, Any], PricingCall | None]:
        """Run one prompt and parse the JSON answer.

        Args:
            prompt (str): Rendered prompt text.
            model (str): Model identifier.
            options (dict[str, str]): Group options.
            document (str): Document payload, sent separately when the prompt does not embed it.

        Raises:
            InvocationError: If the request fails or the answer is not a JSON object.

        Returns:
            tuple[dict[str, Any], PricingCall | None]: Field values and token usage.
        """
        messages: list[dict[str, str]] = [
            {"role": "system", "content": SYSTEM_MESSAGE},
            {"role": "user", "content": prompt},
        ]
        if document and document not in prompt:
            messages.append({"role": "user", "content": document})

        client = self._get_client()
        try:
            completion = client.chat.completions.create(
                model=model,
                messages=messages,  # type: ignore[arg-type]
                response_format={"type": "json_object"},
                **completion_params(options),
            )
        except openai.APIStatusError as exc:
            raise InvocationError(
                message=f"Chat completion request failed with status {exc.status_code}",
            ) from exc
        except openai.APITimeoutError as exc:
            raise InvocationError(message="Chat completion request timed out") from exc
        except openai.APIConnectionError as exc:
            raise InvocationError(message=f"Chat completion request failed: {exc}") from exc

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise InvocationError(message=f"Model '{model}' returned an empty answer")
        try:
            values = json.loads(content)
        except json.JSONDecodeError as exc:
            raise InvocationError(message=f"Model '{model}' returned invalid JSON") from exc
        if not isinstance(values, dict):
            raise InvocationError(message=f"Model '{model}' returned {type(values).__name__}, expected an object")

        usage = completion.usage
        pricing = PricingCall(
            provider="openai",
            model=model,
            input_tokens=usage.prompt_tokens if usage else None,
            output_tokens=usage.completion_tokens if usage else None,
        )
        logger.info("Values extracted", extra={"model": model, "fields": len(values)})
        return values, pricing
