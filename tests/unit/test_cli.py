from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from extractplan import cli
from extractplan.rendering import TEXT_HEADER
from extractplan.typing.enums import RenderFormat

if TYPE_CHECKING:
    from pathlib import Path

    from extractplan.settings import Settings


_SCHEMA = {
    "name": "person",
    "groups": [
        {"name": "basic", "prompt": "basic", "model": "gpt-4o-mini"},
        {"name": "contact", "prompt": "contact", "model": "gpt-4o"},
    ],
    "fields": [
        {"name": "name", "group": "basic"},
        {"name": "age", "group": "basic"},
        {"name": "email", "group": "contact"},
    ],
}


@pytest.fixture
def schema_path(tmp_path: Path) -> Path:
    path = tmp_path / "schema.json"
    path.write_text(json.dumps(_SCHEMA), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, settings: Settings) -> None:
    monkeypatch.setattr(cli, "get_settings", lambda: settings)


def test_build_parser_supports_version_flag(capsys) -> None:
    parser = cli.build_parser()

    with pytest.raises(SystemExit) as exc_info:
        parser.parse_args(["--version"])
    assert exc_info.value.code == 0

    captured = capsys.readouterr()
    assert "0.1.0" in captured.out


def test_build_parser_parses_format_case_insensitively(schema_path: Path) -> None:
    args = cli.build_parser().parse_args(["explain", "--schema", str(schema_path), "--format", "DOT"])

    assert args.render_format == RenderFormat.DOT


def test_build_parser_rejects_unknown_format(schema_path: Path, capsys) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.build_parser().parse_args(["explain", "--schema", str(schema_path), "--format", "yaml"])

    assert exc_info.value.code == 2
    assert "--format must be one of" in capsys.readouterr().err


def test_main_without_command_prints_help(capsys) -> None:
    assert cli.main([]) == 0
    assert "usage" in capsys.readouterr().out.lower()


def test_main_explain_prints_text_plan(schema_path: Path, capsys) -> None:
    assert cli.main(["explain", "--schema", str(schema_path)]) == 0

    out = capsys.readouterr().out
    assert out.startswith(TEXT_HEADER)
    assert "basic" in out
    assert "contact" in out
    assert "$" not in out


def test_main_explain_with_costs_writes_json_file(schema_path: Path, tmp_path: Path) -> None:
    output_path = tmp_path / "out" / "plan.json"

    code = cli.main(
        ["explain", "--schema", str(schema_path), "--format", "json", "--with-costs", "--output", str(output_path)],
    )

    assert code == 0
    payload = json.loads(output_path.read_text(encoding="utf-8"))
    assert payload["type"] == "schema_analysis"
    assert payload["real_cost"] > 0
    assert [child["type"] for child in payload["children"]] == ["prompt_call", "prompt_call", "merge"]


def test_main_explain_reads_custom_pricing(schema_path: Path, tmp_path: Path, capsys) -> None:
    pricing_path = tmp_path / "pricing.json"
    pricing_path.write_text(
        json.dumps({"gpt-4o-mini": {"input_price_per_million": 1.0, "output_price_per_million": 1.0}}),
        encoding="utf-8",
    )

    code = cli.main(["explain", "--schema", str(schema_path), "--with-costs", "--pricing", str(pricing_path)])

    # gpt-4o has no entry and the default policy rejects it
    assert code == 1
    assert capsys.readouterr().out == ""


def test_main_dry_run_prints_stats(schema_path: Path, tmp_path: Path, capsys) -> None:
    sample = tmp_path / "sample.txt"
    sample.write_text("Ada Lovelace, 36, ada@example.test", encoding="utf-8")

    assert cli.main(["dry-run", "--schema", str(schema_path), "--sample", str(sample)]) == 0

    stats = json.loads(capsys.readouterr().out)
    assert stats["prompt_calls"] == 2
    assert stats["fields_extracted"] == 3
    assert stats["model_calls"] == {"gpt-4o-mini": 1, "gpt-4o": 1}


def test_main_returns_error_for_invalid_schema(tmp_path: Path) -> None:
    path = tmp_path / "schema.json"
    path.write_text("[1, 2", encoding="utf-8")

    assert cli.main(["explain", "--schema", str(path)]) == 1


def test_main_returns_error_for_missing_schema_file(tmp_path: Path) -> None:
    assert cli.main(["explain", "--schema", str(tmp_path / "missing.json")]) == 1
