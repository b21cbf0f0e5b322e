"""Extraction orchestration."""

from __future__ import annotations

from collections.abc import Mapping
from functools import partial
from typing import TYPE_CHECKING, Any

from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from extractplan.dry_run import dry_run, stats_from_calls
from extractplan.exceptions import ConfigurationError, ExtractionError
from extractplan.grouping import GroupRegistry, resolve_groups
from extractplan.logging import get_logger, log_context
from extractplan.planning import build_plan, build_plan_from_stats
from extractplan.pricing import attach_cost, merge_pricing_calls
from extractplan.runners import create_runner, default_activity_host, run_sync
from extractplan.settings import get_settings
from extractplan.typing.models import (
    ExecutionStats,
    ExtractionResult,
    GroupExecution,
    GroupResolution,
    PlanNode,
    PricingCall,
    PricingTable,
    PromptGroup,
    SchemaSpec,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from pathlib import Path

    from tenacity import RetryCallState

    from extractplan.settings import Settings
    from extractplan.typing.protocol import ActivityHost, Invoker, PromptProvider, Runner

logger = get_logger(__name__)

_MISSING = object()


def _log_retry(retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome
    logger.warning(
        "Prompt call failed, retrying",
        extra={
            "attempt": retry_state.attempt_number,
            "delay": retry_state.upcoming_sleep,
            "error": repr(outcome.exception()) if outcome else None,
        },
    )


def _lookup(fragment: Mapping[str, Any], full_name: str) -> Any:
    """Find a field in a model answer, by dotted key first, then by nested path.

    Returns:
        Any: Field value, or ``_MISSING``.
    """
    if full_name in fragment:
        return fragment[full_name]
    node: Any = fragment
    for part in full_name.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return _MISSING
        node = node[part]
    return node


def _set_path(data: dict[str, Any], full_name: str, value: Any) -> None:
    *parents, leaf = full_name.split(".")
    node = data
    for part in parents:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[leaf] = value


class _GroupOutcome:
    """Answer and usage recorded by one group operation."""

    __slots__ = ("fragment", "usage")

    def __init__(self, fragment: Mapping[str, Any], usage: PricingCall | None) -> None:
        self.fragment = fragment
        self.usage = usage


class Extractor:
    """Resolve a schema into prompt groups and run one model call per group."""

    def __init__(
        self,
        invoker: Invoker,
        prompts: PromptProvider,
        *,
        registry: GroupRegistry | None = None,
        settings: Settings | None = None,
        runner_factory: Callable[[], Runner] | None = None,
        activities: ActivityHost | None = None,
        pricing: PricingTable | None = None,
    ) -> None:
        """Initialize extractor.

        Args:
            invoker: Inference collaborator.
            prompts: Prompt collaborator.
            registry: Group aliases shared by every pass.
            settings: Runtime settings; loaded from the environment when omitted.
            runner_factory: Builds a fresh runner per pass; defaults to the configured backend.
            activities: Host for the model calls; defaults to the one matching the backend.
            pricing: Optional price table used to cost observed usage and plans.
        """
        self._invoker = invoker
        self._prompts = prompts
        self._registry = registry or GroupRegistry()
        self._settings = settings or get_settings()
        self._runner_factory = runner_factory or partial(create_runner, self._settings)
        self._activities = activities or default_activity_host(self._settings)
        self._pricing = pricing

    @property
    def registry(self) -> GroupRegistry:
        """Return the group alias registry."""
        return self._registry

    def resolve(
        self,
        schema: SchemaSpec,
        *,
        field_models: Mapping[str, str] | None = None,
        field_prompts: Mapping[str, str] | None = None,
    ) -> GroupResolution:
        """Resolve schema fields with the configured fallbacks.

        Returns:
            GroupResolution: Ordered groups.
        """
        return resolve_groups(
            schema,
            self._registry,
            fallback_model=self._settings.default_model,
            fallback_prompt=self._settings.fallback_prompt,
            field_models=field_models,
            field_prompts=field_prompts,
            flatten_groups=self._settings.flatten_groups,
        )

    def dry_run(
        self,
        schema: SchemaSpec,
        sample_input: str | Path,
        *,
        field_models: Mapping[str, str] | None = None,
        field_prompts: Mapping[str, str] | None = None,
    ) -> ExecutionStats:
        """Simulate a pass against a sample document without calling a model.

        Returns:
            ExecutionStats: Simulated statistics.
        """
        resolution = self.resolve(schema, field_models=field_models, field_prompts=field_prompts)
        return dry_run(resolution, sample_input)

    def explain(
        self,
        schema: SchemaSpec,
        *,
        sample_document: str | Path | None = None,
        field_models: Mapping[str, str] | None = None,
        field_prompts: Mapping[str, str] | None = None,
    ) -> PlanNode:
        """Build the cost-annotated plan for a schema.

        Returns:
            PlanNode: Plan root.
        """
        resolution = self.resolve(schema, field_models=field_models, field_prompts=field_prompts)
        if sample_document is None:
            return build_plan(
                resolution,
                pricing=self._pricing,
                pricing_policy=self._settings.pricing_policy,
            )
        return build_plan_from_stats(
            dry_run(resolution, sample_document),
            schema_name=resolution.schema_name,
            pricing=self._pricing,
            pricing_policy=self._settings.pricing_policy,
        )

    def _prompt_name(self, group: PromptGroup, resolution: GroupResolution) -> str:
        prompt_name = group.key.prompt or resolution.fallback_prompt
        if not prompt_name:
            raise ConfigurationError(
                message=f"No prompt for fields {group.fields} and no fallback prompt configured",
            )
        return prompt_name

    def _operation(
        self,
        group: PromptGroup,
        prompt_name: str,
        document: str,
        outcomes: list[_GroupOutcome | None],
        slot: int,
    ) -> Callable[[], Awaitable[None]]:
        async def _call() -> None:
            prompt = self._prompts.get_prompt(prompt_name, list(group.fields), document)
            invoke = partial(
                self._invoker.invoke,
                prompt=prompt,
                model=group.key.model,
                options=group.key.options_dict,
                document=document,
            )
            retrying = AsyncRetrying(
                stop=stop_after_attempt(self._settings.max_retries + 1),
                wait=wait_exponential(multiplier=self._settings.retry_backoff),
                before_sleep=_log_retry,
                reraise=True,
            )
            async for attempt in retrying:
                with attempt:
                    fragment, usage = await self._activities.execute(invoke)
            if not isinstance(fragment, Mapping):
                raise ExtractionError(
                    message=f"Prompt '{prompt_name}' returned {type(fragment).__name__}, expected a mapping",
                )
            # each operation owns exactly one slot
            outcomes[slot] = _GroupOutcome(fragment, usage)

        return _call

    async def aextract(
        self,
        schema: SchemaSpec,
        document: str,
        *,
        field_models: Mapping[str, str] | None = None,
        field_prompts: Mapping[str, str] | None = None,
        include_plan: bool = False,
    ) -> ExtractionResult:
        """Extract every schema field with one concurrent call per group.

        Args:
            schema: Schema to extract.
            document: Document payload.
            field_models: Per-field model overrides.
            field_prompts: Per-field prompt overrides.
            include_plan: Attach a plan built from the observed usage.

        Raises:
            ConfigurationError: If a group has no prompt and no fallback prompt exists.

        Returns:
            ExtractionResult: Nested and flat values, statistics and usage.
        """
        resolution = self.resolve(schema, field_models=field_models, field_prompts=field_prompts)
        prompt_names = [self._prompt_name(group, resolution) for group in resolution.groups]

        logger.info(
            "Extraction started",
            extra={"schema": resolution.schema_name, "groups": len(resolution.groups)},
        )
        outcomes: list[_GroupOutcome | None] = [None] * len(resolution.groups)
        runner = self._runner_factory()
        with log_context(schema=resolution.schema_name):
            for slot, (group, prompt_name) in enumerate(zip(resolution.groups, prompt_names, strict=True)):
                runner.go(self._operation(group, prompt_name, document, outcomes, slot))
            await runner.wait()

        data: dict[str, Any] = {}
        flat: dict[str, Any] = {}
        usage: list[PricingCall] = []
        calls: list[GroupExecution] = []
        for group, prompt_name, outcome in zip(resolution.groups, prompt_names, outcomes, strict=True):
            if outcome is None:
                raise ExtractionError(message=f"Prompt '{prompt_name}' finished without a result")
            for full_name in group.fields:
                value = _lookup(outcome.fragment, full_name)
                value = None if value is _MISSING else value
                flat[full_name] = value
                _set_path(data, full_name, value)

            call_usage = outcome.usage
            if call_usage is not None and self._pricing is not None:
                call_usage = attach_cost(call_usage, self._pricing)
            if call_usage is not None:
                usage.append(call_usage)
            calls.append(
                GroupExecution(
                    prompt_name=prompt_name,
                    model=group.key.model,
                    options=group.key.options_dict,
                    fields=list(group.fields),
                    input_tokens=(call_usage.input_tokens or 0) if call_usage else 0,
                    output_tokens=(call_usage.output_tokens or 0) if call_usage else 0,
                    parent_path=group.key.parent_path,
                ),
            )

        stats = stats_from_calls(calls)
        plan = None
        if include_plan:
            plan = build_plan_from_stats(
                stats,
                schema_name=resolution.schema_name,
                pricing=self._pricing,
                pricing_policy=self._settings.pricing_policy,
            )
        logger.info(
            "Extraction completed",
            extra={
                "schema": resolution.schema_name,
                "prompt_calls": stats.prompt_calls,
                "fields": stats.fields_extracted,
            },
        )
        return ExtractionResult(
            data=data,
            flat=flat,
            stats=stats,
            usage=usage,
            total_usage=merge_pricing_calls(usage),
            plan=plan,
        )

    def extract(
        self,
        schema: SchemaSpec,
        document: str,
        *,
        field_models: Mapping[str, str] | None = None,
        field_prompts: Mapping[str, str] | None = None,
        include_plan: bool = False,
    ) -> ExtractionResult:
        """Synchronous form of :meth:`aextract`.

        Returns:
            ExtractionResult: Extraction output.
        """
        return run_sync(
            self.aextract(
                schema,
                document,
                field_models=field_models,
                field_prompts=field_prompts,
                include_plan=include_plan,
            ),
        )
