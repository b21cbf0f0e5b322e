"""Group resolution models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GroupKey(BaseModel):
    """Canonical identity of a prompt group."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    parent_path: str = ""
    prompt: str = ""
    model: str
    options: tuple[tuple[str, str], ...] = ()

    @property
    def options_dict(self) -> dict[str, str]:
        """Return options as a plain mapping."""
        return dict(self.options)

    @property
    def label(self) -> str:
        """Return a short human label for logs and plans."""
        base = self.prompt or "<fallback>"
        if self.options:
            query = "&".join(f"{key}={value}" for key, value in self.options)
            return f"{base}?{query}"
        return base


class PromptGroup(BaseModel):
    """Fields batched into one prompt call."""

    model_config = ConfigDict(extra="forbid")

    key: GroupKey
    fields: list[str] = Field(default_factory=list)


class GroupResolution(BaseModel):
    """Ordered output of the group resolver."""

    model_config = ConfigDict(extra="forbid")

    schema_name: str = "schema"
    groups: list[PromptGroup] = Field(default_factory=list)
    fallback_model: str
    fallback_prompt: str = ""

    @property
    def field_names(self) -> list[str]:
        """Return every resolved field in group order."""
        return [name for group in self.groups for name in group.fields]

    def mapping(self) -> dict[GroupKey, list[str]]:
        """Return the group key -> field names mapping, preserving order."""
        return {group.key: list(group.fields) for group in self.groups}
