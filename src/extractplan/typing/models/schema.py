"""Schema-centric domain models."""

from __future__ import annotations

from collections.abc import Mapping
from urllib.parse import parse_qsl

from pydantic import BaseModel, ConfigDict, Field, field_validator


def normalize_options(value: Mapping[str, object] | str | None) -> dict[str, str]:
    """Normalize an option bag given as a mapping or a query string.

    Args:
        value: Options mapping, ``"a=1&b=2"`` query string, or None.

    Raises:
        TypeError: If the value has an unsupported type.

    Returns:
        dict[str, str]: Options with string keys and values.
    """
    if value is None:
        return {}
    if isinstance(value, str):
        return dict(parse_qsl(value.lstrip("?"), keep_blank_values=True))
    if isinstance(value, Mapping):
        return {str(key): str(item) for key, item in value.items()}
    raise TypeError(f"options must be a mapping or query string, got {type(value).__name__}")  # noqa: TRY003


def join_path(parent: str, child: str) -> str:
    """Join a dotted parent path and a child name.

    Returns:
        str: Dotted path.
    """
    if not parent:
        return child
    return f"{parent}.{child}"


class FieldSpec(BaseModel):
    """One leaf output field and its extraction annotation."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(min_length=1)
    parent_path: str = ""
    prompt: str | None = None
    model: str | None = None
    options: dict[str, str] = Field(default_factory=dict)
    group: str | None = None

    @field_validator("options", mode="before")
    @classmethod
    def _validate_options(cls, value: object) -> dict[str, str]:
        """Accept options as a mapping or query string.

        Returns:
            dict[str, str]: Normalized options.
        """
        return normalize_options(value)  # type: ignore[arg-type]

    @property
    def full_name(self) -> str:
        """Return the dotted field name including its parent path."""
        return join_path(self.parent_path, self.name)


class GroupDefinition(BaseModel):
    """Named alias resolving to one prompt, model and options set."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(min_length=1)
    prompt: str
    model: str
    options: dict[str, str] = Field(default_factory=dict)

    @field_validator("options", mode="before")
    @classmethod
    def _validate_options(cls, value: object) -> dict[str, str]:
        """Accept options as a mapping or query string.

        Returns:
            dict[str, str]: Normalized options.
        """
        return normalize_options(value)  # type: ignore[arg-type]


class SchemaSpec(BaseModel):
    """Schema describing the output fields to extract."""

    model_config = ConfigDict(extra="forbid")

    name: str = "schema"
    fields: list[FieldSpec]
    groups: list[GroupDefinition] = Field(default_factory=list)

    @classmethod
    def from_field_names(
        cls,
        names: list[str],
        *,
        prompts: Mapping[str, str] | None = None,
        models: Mapping[str, str] | None = None,
        name: str = "schema",
    ) -> SchemaSpec:
        """Build a flat schema from field names and optional per-field overrides.

        Args:
            names: Field names; dotted names are split into parent path and leaf.
            prompts: Optional field name -> prompt identifier overrides.
            models: Optional field name -> model identifier overrides.
            name: Schema name.

        Returns:
            SchemaSpec: Schema with one field per name.
        """
        prompts = prompts or {}
        models = models or {}
        fields: list[FieldSpec] = []
        for full_name in names:
            parent, _, leaf = full_name.rpartition(".")
            fields.append(
                FieldSpec(
                    name=leaf,
                    parent_path=parent,
                    prompt=prompts.get(full_name),
                    model=models.get(full_name),
                ),
            )
        return cls(name=name, fields=fields)
