"""Declarative schema registration."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from extractplan.exceptions import ConfigurationError
from extractplan.typing.models import FieldSpec, GroupDefinition, SchemaSpec, join_path, normalize_options

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

    Options = Mapping[str, object] | str | None


def _field_payload(entry: Any) -> Any:
    if isinstance(entry, str):
        parent, _, leaf = entry.rpartition(".")
        return {"name": leaf, "parent_path": parent}
    return entry


def load_schema(payload: Mapping[str, Any]) -> SchemaSpec:
    """Build a schema from a JSON-compatible mapping.

    Fields may be dotted names or full field objects.

    Example:
        >>> load_schema({"fields": ["name", {"name": "email", "group": "contact"}],
        ...              "groups": [{"name": "contact", "prompt": "contact", "model": "gpt-4o"}]})

    Raises:
        ConfigurationError: If the payload does not describe a valid schema.

    Returns:
        SchemaSpec: Parsed schema.
    """
    try:
        return SchemaSpec.model_validate(
            {
                **payload,
                "fields": [_field_payload(entry) for entry in payload.get("fields", [])],
            },
        )
    except ValidationError as exc:
        raise ConfigurationError(message=f"Invalid schema: {exc}") from exc


def load_schema_file(path: Path) -> SchemaSpec:
    """Read a JSON schema file.

    Raises:
        ConfigurationError: If the file is not a JSON object describing a schema.

    Returns:
        SchemaSpec: Parsed schema.
    """
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigurationError(message=f"Schema file {path} is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigurationError(message=f"Schema file {path} must contain a JSON object")
    return load_schema(payload)


class SchemaBuilder:
    """Register fields explicitly, optionally nested under sections.

    Fields declared inside a section inherit the section's prompt, model and
    options unless they set their own, mirroring how a nested sub-object
    shares the annotation of its parent.

    Example:
        >>> builder = SchemaBuilder("invoice")
        >>> builder.group("basic", prompt="basic", model="fast-model")
        >>> builder.field("name", group="basic").field("age", group="basic")
        >>> company = builder.section("company", prompt="company", model="accurate-model")
        >>> company.field("name").field("address")
        >>> schema = builder.build()
    """

    def __init__(
        self,
        name: str = "schema",
        *,
        _root: SchemaBuilder | None = None,
        _path: str = "",
        _prompt: str | None = None,
        _model: str | None = None,
        _options: dict[str, str] | None = None,
        _group: str | None = None,
    ) -> None:
        self._name = name
        self._root = _root or self
        self._path = _path
        self._prompt = _prompt
        self._model = _model
        self._options = _options or {}
        self._group = _group
        if _root is None:
            self._fields: list[FieldSpec] = []
            self._groups: list[GroupDefinition] = []

    def group(self, name: str, *, prompt: str, model: str, options: Options = None) -> SchemaBuilder:
        """Register a group alias on the schema."""
        self._root._groups.append(
            GroupDefinition(name=name, prompt=prompt, model=model, options=normalize_options(options)),
        )
        return self

    def field(
        self,
        name: str,
        *,
        prompt: str | None = None,
        model: str | None = None,
        options: Options = None,
        group: str | None = None,
    ) -> SchemaBuilder:
        """Register a leaf field under the current section.

        Returns:
            SchemaBuilder: This builder, for chaining.
        """
        merged = {**self._options, **normalize_options(options)}
        self._root._fields.append(
            FieldSpec(
                name=name,
                parent_path=self._path,
                prompt=prompt if prompt is not None else self._prompt,
                model=model if model is not None else self._model,
                options=merged,
                group=group if group is not None else self._group,
            ),
        )
        return self

    def section(
        self,
        name: str,
        *,
        prompt: str | None = None,
        model: str | None = None,
        options: Options = None,
        group: str | None = None,
    ) -> SchemaBuilder:
        """Open a nested section whose fields inherit its annotation.

        Returns:
            SchemaBuilder: Builder scoped to the section.
        """
        return SchemaBuilder(
            self._name,
            _root=self._root,
            _path=join_path(self._path, name),
            _prompt=prompt if prompt is not None else self._prompt,
            _model=model if model is not None else self._model,
            _options={**self._options, **normalize_options(options)},
            _group=group if group is not None else self._group,
        )

    def build(self) -> SchemaSpec:
        """Return the registered schema."""
        root = self._root
        return SchemaSpec(name=root._name, fields=list(root._fields), groups=list(root._groups))
