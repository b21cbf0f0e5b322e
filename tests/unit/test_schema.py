from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from extractplan.exceptions import ConfigurationError
from extractplan.grouping import resolve_groups
from extractplan.schema import SchemaBuilder, load_schema, load_schema_file

if TYPE_CHECKING:
    from pathlib import Path


def test_builder_sections_inherit_annotations() -> None:
    builder = SchemaBuilder("invoice")
    builder.group("basic", prompt="basic", model="fast-model")
    builder.field("name", group="basic").field("age", group="basic")
    company = builder.section("company", prompt="company", model="accurate-model", options="temperature=0.1")
    company.field("name").field("address", options={"topK": "5"})

    schema = builder.build()

    assert schema.name == "invoice"
    assert [field.full_name for field in schema.fields] == ["name", "age", "company.name", "company.address"]
    address = schema.fields[3]
    assert address.prompt == "company"
    assert address.model == "accurate-model"
    assert address.options == {"temperature": "0.1", "topK": "5"}
    assert [definition.name for definition in schema.groups] == ["basic"]


def test_builder_schema_resolves_into_groups() -> None:
    builder = SchemaBuilder()
    builder.group("basic", prompt="basic", model="fast-model")
    builder.field("name", group="basic").field("age", group="basic")
    builder.section("company", prompt="company", model="accurate-model").field("name").field("address")

    resolution = resolve_groups(builder.build(), fallback_model="default-model")

    assert [group.fields for group in resolution.groups] == [["name", "age"], ["company.name", "company.address"]]


def test_nested_sections_join_paths() -> None:
    builder = SchemaBuilder()
    builder.section("company").section("address", prompt="address").field("city")

    (field,) = builder.build().fields

    assert field.full_name == "company.address.city"
    assert field.prompt == "address"


def test_load_schema_accepts_names_and_objects() -> None:
    schema = load_schema(
        {
            "name": "people",
            "fields": ["name", "company.name", {"name": "email", "group": "contact"}],
            "groups": [{"name": "contact", "prompt": "contact", "model": "gpt-4o", "options": "temperature=0"}],
        },
    )

    assert [field.full_name for field in schema.fields] == ["name", "company.name", "email"]
    assert schema.groups[0].options == {"temperature": "0"}


def test_load_schema_rejects_invalid_payload() -> None:
    with pytest.raises(ConfigurationError, match="Invalid schema"):
        load_schema({"fields": [{"prompt": "no-name"}]})


def test_load_schema_file_rejects_non_object(tmp_path: Path) -> None:
    path = tmp_path / "schema.json"
    path.write_text(json.dumps(["name"]), encoding="utf-8")

    with pytest.raises(ConfigurationError, match="JSON object"):
        load_schema_file(path)


def test_load_schema_file_rejects_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "schema.json"
    path.write_text("{", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="not valid JSON"):
        load_schema_file(path)
