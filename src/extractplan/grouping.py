"""Group resolution: batch annotated fields into prompt calls."""

from __future__ import annotations

from typing import TYPE_CHECKING

from extractplan.exceptions import ConfigurationError
from extractplan.logging import get_logger
from extractplan.typing.models import (
    FieldSpec,
    GroupDefinition,
    GroupKey,
    GroupResolution,
    PromptGroup,
    SchemaSpec,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

logger = get_logger(__name__)


def canonical_options(options: Mapping[str, str]) -> tuple[tuple[str, str], ...]:
    """Return an order-independent representation of an option bag.

    Args:
        options: Option mapping.

    Returns:
        tuple[tuple[str, str], ...]: Sorted key/value pairs.
    """
    return tuple(sorted((str(key), str(value)) for key, value in options.items()))


class GroupRegistry:
    """Registered group aliases for one planning or execution pass."""

    def __init__(self, definitions: Iterable[GroupDefinition] = ()) -> None:
        """Initialize registry.

        Args:
            definitions: Aliases to register up front.
        """
        self._definitions: dict[str, GroupDefinition] = {}
        for definition in definitions:
            self.register(definition)

    def register(self, definition: GroupDefinition) -> None:
        """Register an alias.

        Re-registering an identical definition is a no-op.

        Args:
            definition: Alias definition.

        Raises:
            ConfigurationError: If the alias already resolves to different values.
        """
        existing = self._definitions.get(definition.name)
        if existing is not None and existing != definition:
            raise ConfigurationError(
                message=(
                    f"Group alias '{definition.name}' is already registered as "
                    f"({existing.prompt}, {existing.model}, {existing.options}); "
                    f"cannot redefine as ({definition.prompt}, {definition.model}, {definition.options})"
                ),
            )
        self._definitions[definition.name] = definition

    def define(self, name: str, prompt: str, model: str, options: Mapping[str, str] | str | None = None) -> None:
        """Register an alias from plain values."""
        self.register(GroupDefinition(name=name, prompt=prompt, model=model, options=options or {}))

    def resolve(self, name: str) -> GroupDefinition:
        """Return the definition registered under ``name``.

        Raises:
            ConfigurationError: If the alias is not registered.

        Returns:
            GroupDefinition: Registered alias.
        """
        try:
            return self._definitions[name]
        except KeyError:
            raise ConfigurationError(message=f"Unregistered group alias '{name}'") from None

    @property
    def definitions(self) -> list[GroupDefinition]:
        """Return registered aliases in registration order."""
        return list(self._definitions.values())

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)


def _key_for_field(
    field: FieldSpec,
    registry: GroupRegistry,
    *,
    fallback_model: str,
    field_models: Mapping[str, str],
    field_prompts: Mapping[str, str],
    flatten_groups: bool,
) -> GroupKey:
    prompt = ""
    model = ""
    options: dict[str, str] = {}

    if field.group is not None:
        alias = registry.resolve(field.group)
        prompt, model, options = alias.prompt, alias.model, dict(alias.options)

    # direct annotations win over the alias, attribute by attribute
    if field.prompt is not None:
        prompt = field.prompt
    if field.model is not None:
        model = field.model
    options.update(field.options)

    full_name = field.full_name
    model = field_models.get(full_name, model)
    prompt = field_prompts.get(full_name, prompt)

    return GroupKey(
        parent_path="" if flatten_groups else field.parent_path,
        prompt=prompt,
        model=model or fallback_model,
        options=canonical_options(options),
    )


def resolve_groups(
    schema: SchemaSpec,
    registry: GroupRegistry | None = None,
    *,
    fallback_model: str,
    fallback_prompt: str = "",
    field_models: Mapping[str, str] | None = None,
    field_prompts: Mapping[str, str] | None = None,
    flatten_groups: bool = False,
) -> GroupResolution:
    """Resolve schema fields into deterministic prompt groups.

    Groups and their fields come out in first-seen order. Nested fields are
    keyed by their parent path unless ``flatten_groups`` is set.

    Args:
        schema: Schema to resolve.
        registry: Group aliases; aliases declared on the schema are added to it.
        fallback_model: Model for fields with no model annotation.
        fallback_prompt: Prompt recorded for fields with no prompt annotation.
        field_models: Per-field model overrides keyed by full field name.
        field_prompts: Per-field prompt overrides keyed by full field name.
        flatten_groups: Ignore parent paths when grouping.

    Raises:
        ConfigurationError: On unregistered aliases, conflicting aliases or duplicate fields.

    Returns:
        GroupResolution: Ordered groups.
    """
    if not fallback_model:
        raise ConfigurationError(message="A fallback model is required to resolve groups")

    active = GroupRegistry()
    for definition in [*(registry.definitions if registry else ()), *schema.groups]:
        active.register(definition)

    grouped: dict[GroupKey, list[str]] = {}
    seen: set[str] = set()
    for field in schema.fields:
        full_name = field.full_name
        if full_name in seen:
            raise ConfigurationError(message=f"Duplicate field '{full_name}' in schema '{schema.name}'")
        seen.add(full_name)

        key = _key_for_field(
            field,
            active,
            fallback_model=fallback_model,
            field_models=field_models or {},
            field_prompts=field_prompts or {},
            flatten_groups=flatten_groups,
        )
        grouped.setdefault(key, []).append(full_name)

    resolution = GroupResolution(
        schema_name=schema.name,
        groups=[PromptGroup(key=key, fields=fields) for key, fields in grouped.items()],
        fallback_model=fallback_model,
        fallback_prompt=fallback_prompt,
    )
    logger.debug(
        "Resolved prompt groups",
        extra={"schema": schema.name, "group_count": len(resolution.groups), "field_count": len(seen)},
    )
    return resolution
