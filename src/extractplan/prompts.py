"""Prompt builders for grouped extraction calls."""

from __future__ import annotations

from typing import TYPE_CHECKING

from extractplan.exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

KEYS_PLACEHOLDER = "{keys}"
DOCUMENT_START = "<<DOC>>"
DOCUMENT_END = "<<END>>"

DEFAULT_TEMPLATE = (
    "Extract the following fields from the document: {keys}. "
    "Return a JSON object with exactly these keys. "
    "When a value is missing return null."
)


def build_group_prompt(template: str, keys: list[str], document: str) -> str:
    """Render a template for one group call.

    Args:
        template (str): Template text; ``{keys}`` is replaced by the requested keys.
        keys (list[str]): Field names requested from the model.
        document (str): Document payload appended between markers.

    Returns:
        str: Prompt text.
    """
    body = template.replace(KEYS_PLACEHOLDER, ", ".join(keys))
    return f"{body}\n{DOCUMENT_START}\n{document}\n{DOCUMENT_END}"


class MappingPromptProvider:
    """Prompt collaborator backed by an in-memory template table."""

    def __init__(self, templates: Mapping[str, str] | None = None, *, default_template: str | None = None) -> None:
        """Initialize provider.

        Args:
            templates: Prompt name -> template text.
            default_template: Template used for unknown prompt names, if any.
        """
        self._templates = dict(templates or {})
        self._default_template = default_template

    def get_prompt(self, name: str, keys: list[str], document: str) -> str:
        """Return the rendered prompt for a group.

        Raises:
            ConfigurationError: If the prompt is unknown and no default template is set.

        Returns:
            str: Prompt text.
        """
        template = self._templates.get(name, self._default_template)
        if template is None:
            raise ConfigurationError(message=f"Unknown prompt template '{name}'")
        return build_group_prompt(template, keys, document)
