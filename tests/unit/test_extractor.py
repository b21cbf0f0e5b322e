from __future__ import annotations

import threading
from typing import Any

import pytest

from extractplan.exceptions import ConfigurationError, ExtractionError, InvocationError
from extractplan.extractor import Extractor
from extractplan.grouping import GroupRegistry
from extractplan.prompts import MappingPromptProvider
from extractplan.pricing import default_model_pricing
from extractplan.runners import CoroutineRunner, InlineActivityHost, ThreadRunner
from extractplan.settings import Settings
from extractplan.typing.models import FieldSpec, PricingCall, SchemaSpec


class _FakeInvoker:
    """Answer each call from a prompt -> fragment table."""

    def __init__(self, answers: dict[str, Any]) -> None:
        self.answers = answers
        self.calls: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def invoke(self, *, prompt: str, model: str, options: dict[str, str], document: str):
        with self._lock:
            self.calls.append({"prompt": prompt, "model": model, "options": options, "document": document})
        name = prompt.split(":", 1)[0]
        answer = self.answers[name]
        if isinstance(answer, Exception):
            raise answer
        return answer, PricingCall(provider="fake", model=model, input_tokens=100, output_tokens=10)


def _prompts() -> MappingPromptProvider:
    return MappingPromptProvider(
        {
            "basic": "basic: {keys}",
            "contact": "contact: {keys}",
            "company": "company: {keys}",
            "generic": "generic: {keys}",
        },
    )


def _schema() -> SchemaSpec:
    return SchemaSpec(
        name="person",
        fields=[
            FieldSpec(name="name", group="basic"),
            FieldSpec(name="age", group="basic"),
            FieldSpec(name="email", group="contact"),
            FieldSpec(name="name", parent_path="company", prompt="company", model="gpt-4o"),
        ],
    )


def _registry() -> GroupRegistry:
    registry = GroupRegistry()
    registry.define("basic", prompt="basic", model="gpt-4o-mini", options="temperature=0")
    registry.define("contact", prompt="contact", model="gpt-4o")
    return registry


def _answers() -> dict[str, Any]:
    return {
        "basic": {"name": "Ada", "age": 36, "unrelated": "ignored"},
        "contact": {"email": "ada@example.test"},
        "company": {"company": {"name": "Analytical Engines"}},
    }


@pytest.fixture(params=["thread", "coroutine"])
def runner_factory(request: pytest.FixtureRequest):
    if request.param == "thread":
        return lambda: ThreadRunner(max_workers=4)
    return CoroutineRunner


def test_extract_merges_fragments_in_group_order(settings: Settings, runner_factory) -> None:
    invoker = _FakeInvoker(_answers())
    extractor = Extractor(
        invoker,
        _prompts(),
        registry=_registry(),
        settings=settings,
        runner_factory=runner_factory,
        activities=InlineActivityHost(),
    )

    result = extractor.extract(_schema(), "Ada, 36, ada@example.test")

    assert result.data == {
        "name": "Ada",
        "age": 36,
        "email": "ada@example.test",
        "company": {"name": "Analytical Engines"},
    }
    assert list(result.flat) == ["name", "age", "email", "company.name"]
    assert result.stats.prompt_calls == 3
    assert result.stats.model_calls == {"gpt-4o-mini": 1, "gpt-4o": 2}
    assert len(invoker.calls) == 3
    basic_call = next(call for call in invoker.calls if call["prompt"].startswith("basic"))
    assert basic_call["options"] == {"temperature": "0"}
    assert basic_call["document"] == "Ada, 36, ada@example.test"


def test_missing_values_are_null(settings: Settings) -> None:
    answers = _answers()
    answers["basic"] = {"name": "Ada"}
    extractor = Extractor(
        _FakeInvoker(answers),
        _prompts(),
        registry=_registry(),
        settings=settings,
        runner_factory=CoroutineRunner,
    )

    result = extractor.extract(_schema(), "doc")

    assert result.flat["age"] is None


def test_invoker_error_propagates_unchanged(settings: Settings, runner_factory) -> None:
    error = InvocationError(message="upstream down")
    answers = _answers()
    answers["contact"] = error
    extractor = Extractor(
        _FakeInvoker(answers),
        _prompts(),
        registry=_registry(),
        settings=settings,
        runner_factory=runner_factory,
    )

    with pytest.raises(InvocationError) as exc_info:
        extractor.extract(_schema(), "doc")
    assert exc_info.value is error


def test_non_mapping_fragment_is_an_extraction_error(settings: Settings) -> None:
    answers = _answers()
    answers["contact"] = ["not", "a", "mapping"]
    extractor = Extractor(
        _FakeInvoker(answers),
        _prompts(),
        registry=_registry(),
        settings=settings,
        runner_factory=CoroutineRunner,
    )

    with pytest.raises(ExtractionError, match="contact"):
        extractor.extract(_schema(), "doc")


def test_group_without_prompt_fails_before_dispatch(settings: Settings) -> None:
    invoker = _FakeInvoker({})
    extractor = Extractor(invoker, _prompts(), settings=settings, runner_factory=CoroutineRunner)

    with pytest.raises(ConfigurationError, match="fallback prompt"):
        extractor.extract(SchemaSpec.from_field_names(["name"]), "doc")
    assert invoker.calls == []


def test_fallback_prompt_and_model_apply_to_unannotated_fields() -> None:
    settings = Settings(_env_file=None, DEFAULT_MODEL="gpt-4.1-nano", FALLBACK_PROMPT="generic")
    invoker = _FakeInvoker({"generic": {"name": "Ada"}})
    extractor = Extractor(invoker, _prompts(), settings=settings, runner_factory=CoroutineRunner)

    result = extractor.extract(SchemaSpec.from_field_names(["name"]), "doc")

    assert result.data == {"name": "Ada"}
    assert invoker.calls[0]["model"] == "gpt-4.1-nano"


def test_usage_is_priced_and_plan_attached(settings: Settings) -> None:
    extractor = Extractor(
        _FakeInvoker(_answers()),
        _prompts(),
        registry=_registry(),
        settings=settings,
        runner_factory=CoroutineRunner,
        pricing=default_model_pricing(),
    )

    result = extractor.extract(_schema(), "doc", include_plan=True)

    assert len(result.usage) == 3
    assert all(call.total_cost_usd is not None for call in result.usage)
    assert result.plan is not None
    assert [node.input_tokens for node in result.plan.prompt_calls] == [100, 100, 100]
    assert result.plan.real_cost == pytest.approx(sum(call.total_cost_usd or 0 for call in result.usage))


def test_dry_run_and_explain_share_resolution(settings: Settings) -> None:
    extractor = Extractor(_FakeInvoker({}), _prompts(), registry=_registry(), settings=settings)

    stats = extractor.dry_run(_schema(), "x" * 280)
    plan = extractor.explain(_schema(), sample_document="x" * 280)

    assert [detail.fields for detail in stats.group_details] == [node.fields for node in plan.prompt_calls]


class _FlakyInvoker(_FakeInvoker):
    """Raise a queued error before answering a prompt."""

    def __init__(self, answers: dict[str, Any], failures: dict[str, list[Exception]]) -> None:
        super().__init__(answers)
        self.failures = failures

    def invoke(self, *, prompt: str, model: str, options: dict[str, str], document: str):
        name = prompt.split(":", 1)[0]
        with self._lock:
            queued = self.failures.get(name)
            error = queued.pop(0) if queued else None
        if error is not None:
            with self._lock:
                self.calls.append({"prompt": prompt, "model": model, "options": options, "document": document})
            raise error
        return super().invoke(prompt=prompt, model=model, options=options, document=document)


def test_failed_call_is_retried_until_it_succeeds(runner_factory) -> None:
    settings = Settings(_env_file=None, FALLBACK_PROMPT="", LOG_JSON=False, MAX_RETRIES=2, RETRY_BACKOFF=0)
    invoker = _FlakyInvoker(_answers(), {"contact": [InvocationError(message="rate limited")]})
    extractor = Extractor(
        invoker,
        _prompts(),
        registry=_registry(),
        settings=settings,
        runner_factory=runner_factory,
    )

    result = extractor.extract(_schema(), "doc")

    assert result.data["email"] == "ada@example.test"
    contact_calls = [call for call in invoker.calls if call["prompt"].startswith("contact")]
    assert len(contact_calls) == 2
    assert len(result.usage) == 3


def test_retries_exhausted_reraise_the_last_error() -> None:
    settings = Settings(_env_file=None, FALLBACK_PROMPT="", LOG_JSON=False, MAX_RETRIES=1, RETRY_BACKOFF=0)
    first = InvocationError(message="upstream down")
    last = InvocationError(message="still down")
    invoker = _FlakyInvoker(_answers(), {"contact": [first, last]})
    extractor = Extractor(
        invoker,
        _prompts(),
        registry=_registry(),
        settings=settings,
        runner_factory=CoroutineRunner,
    )

    with pytest.raises(InvocationError) as exc_info:
        extractor.extract(_schema(), "doc")
    assert exc_info.value is last
    assert len([call for call in invoker.calls if call["prompt"].startswith("contact")]) == 2


def test_no_retry_by_default(settings: Settings) -> None:
    error = InvocationError(message="rate limited")
    invoker = _FlakyInvoker(_answers(), {"contact": [error]})
    extractor = Extractor(invoker, _prompts(), registry=_registry(), settings=settings, runner_factory=CoroutineRunner)

    with pytest.raises(InvocationError) as exc_info:
        extractor.extract(_schema(), "doc")
    assert exc_info.value is error


def test_total_usage_sums_every_call(settings: Settings) -> None:
    extractor = Extractor(
        _FakeInvoker(_answers()),
        _prompts(),
        registry=_registry(),
        settings=settings,
        runner_factory=CoroutineRunner,
        pricing=default_model_pricing(),
    )

    result = extractor.extract(_schema(), "doc")

    assert result.total_usage is not None
    assert result.total_usage.input_tokens == 300
    assert result.total_usage.output_tokens == 30
    assert result.total_usage.model == "gpt-4o-mini,gpt-4o"
    assert result.total_usage.total_cost_usd == pytest.approx(sum(call.total_cost_usd or 0 for call in result.usage))


def test_total_usage_is_none_without_calls() -> None:
    settings = Settings(_env_file=None, FALLBACK_PROMPT="", LOG_JSON=False)
    extractor = Extractor(_FakeInvoker({}), _prompts(), settings=settings, runner_factory=CoroutineRunner)

    result = extractor.extract(SchemaSpec(name="empty", fields=[]), "doc")

    assert result.usage == []
    assert result.total_usage is None
