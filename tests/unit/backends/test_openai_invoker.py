from __future__ import annotations

from types import SimpleNamespace

import httpx
import openai
import pytest

from extractplan.backends import OpenAIInvoker, completion_params
from extractplan.exceptions import InvocationError
from extractplan.settings import Settings


def _completion(content: str | None, usage: object | None = None) -> SimpleNamespace:
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=usage)


def _invoker(mocker, completion: object) -> tuple[OpenAIInvoker, object]:
    client = mocker.Mock()
    client.chat.completions.create.return_value = completion
    settings = Settings(_env_file=None)
    return OpenAIInvoker(settings, client=client), client


def test_invoke_parses_json_and_reports_usage(mocker) -> None:
    usage = SimpleNamespace(prompt_tokens=120, completion_tokens=30)
    invoker, client = _invoker(mocker, _completion('{"name": "Ada", "age": 36}', usage))

    values, pricing = invoker.invoke(
        prompt="Extract name, age\n<<DOC>>\nAda, 36\n<<END>>",
        model="gpt-4o-mini",
        options={"temperature": "0.1", "topK": "20"},
        document="Ada, 36",
    )

    assert values == {"name": "Ada", "age": 36}
    assert pricing is not None
    assert (pricing.model, pricing.input_tokens, pricing.output_tokens) == ("gpt-4o-mini", 120, 30)
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["temperature"] == pytest.approx(0.1)
    assert "topK" not in kwargs
    assert kwargs["response_format"] == {"type": "json_object"}
    # document already embedded in the prompt
    assert len(kwargs["messages"]) == 2


def test_invoke_sends_document_when_prompt_does_not_embed_it(mocker) -> None:
    invoker, client = _invoker(mocker, _completion("{}"))

    invoker.invoke(prompt="Extract name", model="m", options={}, document="Ada")

    messages = client.chat.completions.create.call_args.kwargs["messages"]
    assert messages[-1] == {"role": "user", "content": "Ada"}


@pytest.mark.parametrize("content", [None, "not json", "[1, 2]"])
def test_invoke_rejects_bad_answers(mocker, content: str | None) -> None:
    invoker, _ = _invoker(mocker, _completion(content))

    with pytest.raises(InvocationError):
        invoker.invoke(prompt="p", model="m", options={}, document="d")


def test_invoke_wraps_api_errors(mocker) -> None:
    client = mocker.Mock()
    request = httpx.Request("POST", "https://api.example.test/v1/chat/completions")
    client.chat.completions.create.side_effect = openai.APIConnectionError(request=request)
    invoker = OpenAIInvoker(Settings(_env_file=None), client=client)

    with pytest.raises(InvocationError, match="request failed"):
        invoker.invoke(prompt="p", model="m", options={}, document="d")


def test_invoker_requires_api_key_to_build_client() -> None:
    invoker = OpenAIInvoker(Settings(_env_file=None, OPENAI_API_KEY=None))

    with pytest.raises(InvocationError, match="OPENAI_API_KEY"):
        invoker.invoke(prompt="p", model="m", options={}, document="d")


def test_completion_params_converts_and_rejects_values() -> None:
    assert completion_params({"topP": "0.9", "maxTokens": "256", "seed": "7"}) == {
        "top_p": 0.9,
        "max_tokens": 256,
        "seed": 7,
    }
    with pytest.raises(InvocationError, match="temperature"):
        completion_params({"temperature": "warm"})
