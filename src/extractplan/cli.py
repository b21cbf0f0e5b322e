"""CLI entry point for ExtractPlan."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import TypeAdapter, ValidationError

from extractplan import __version__, logger
from extractplan.dry_run import dry_run
from extractplan.exceptions import ConfigurationError, PackageError
from extractplan.grouping import resolve_groups
from extractplan.logging import configure_logging
from extractplan.planning import explain
from extractplan.pricing import default_model_pricing
from extractplan.rendering import render
from extractplan.schema import load_schema_file
from extractplan.settings import get_settings
from extractplan.typing.enums import RenderFormat
from extractplan.typing.models import ModelPricing, PricingTable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from extractplan.settings import Settings


def _render_format_from_cli(value: str) -> RenderFormat:
    """Convert `--format` CLI value into a render format.

    Args:
        value (str): CLI value.

    Raises:
        argparse.ArgumentTypeError: If value is not supported.

    Returns:
        RenderFormat: Selected format.
    """
    try:
        return RenderFormat.from_str(value)
    except ConfigurationError as exc:
        supported = ", ".join(member.value for member in RenderFormat)
        raise argparse.ArgumentTypeError(f"--format must be one of: {supported}") from exc


def build_parser() -> argparse.ArgumentParser:
    """Create the command-line parser.

    Returns:
        argparse.ArgumentParser: The configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="extractplan")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command")

    explain_parser = subparsers.add_parser("explain", help="Print the execution plan of a schema")
    explain_parser.add_argument("--schema", required=True, type=Path, dest="schema_path")
    explain_parser.add_argument(
        "--format",
        default=RenderFormat.TEXT,
        type=_render_format_from_cli,
        dest="render_format",
    )
    explain_parser.add_argument("--with-costs", action="store_true", dest="with_costs")
    explain_parser.add_argument("--pricing", type=Path, default=None, dest="pricing_path")
    explain_parser.add_argument("--sample", type=Path, default=None, dest="sample_path")
    explain_parser.add_argument("--output", type=Path, default=None, dest="output_path")

    dry_run_parser = subparsers.add_parser("dry-run", help="Simulate an extraction against a sample document")
    dry_run_parser.add_argument("--schema", required=True, type=Path, dest="schema_path")
    dry_run_parser.add_argument("--sample", required=True, type=Path, dest="sample_path")

    return parser


def _load_pricing(path: Path | None) -> PricingTable:
    """Load a pricing table, falling back to the built-in one.

    Args:
        path (Path | None): JSON file mapping model -> prices per million tokens.

    Raises:
        ConfigurationError: If the file is not a valid pricing table.

    Returns:
        PricingTable: Model pricing.
    """
    if path is None:
        return default_model_pricing()
    try:
        return TypeAdapter(dict[str, ModelPricing]).validate_json(path.read_bytes())
    except ValidationError as exc:
        raise ConfigurationError(message=f"Invalid pricing file {path}: {exc}") from exc


def _run_explain(args: argparse.Namespace, settings: Settings) -> str:
    schema = load_schema_file(args.schema_path)
    pricing = _load_pricing(args.pricing_path) if args.with_costs else None
    plan = explain(
        schema,
        fallback_model=settings.default_model,
        fallback_prompt=settings.fallback_prompt,
        flatten_groups=settings.flatten_groups,
        sample_document=args.sample_path,
        pricing=pricing,
        pricing_policy=settings.pricing_policy,
    )
    return render(plan, args.render_format, include_costs=args.with_costs)


def _run_dry_run(args: argparse.Namespace, settings: Settings) -> str:
    schema = load_schema_file(args.schema_path)
    resolution = resolve_groups(
        schema,
        fallback_model=settings.default_model,
        fallback_prompt=settings.fallback_prompt,
        flatten_groups=settings.flatten_groups,
    )
    stats = dry_run(resolution, args.sample_path)
    return json.dumps(stats.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"


def main(argv: Sequence[str] | None = None) -> int:
    """Run the CLI.

    Args:
        argv (Sequence[str] | None): Arguments, defaults to ``sys.argv[1:]``.

    Returns:
        int: Exit code (0 for success, 1 for error).
    """
    settings = get_settings()
    configure_logging(settings=settings)

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command not in {"explain", "dry-run"}:
        parser.print_help()
        return 0

    try:
        if args.command == "explain":
            output = _run_explain(args, settings)
        else:
            output = _run_dry_run(args, settings)
    except PackageError:
        logger.exception("Command failed", extra={"command": args.command})
        return 1
    except KeyboardInterrupt:
        logger.info("Command aborted by user")
        return 130
    except OSError:
        logger.exception("Could not read input file", extra={"command": args.command})
        return 1

    output_path = getattr(args, "output_path", None)
    if output_path is None:
        print(output, end="")  # noqa: T201
        return 0

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(output, encoding="utf-8")
    logger.info("Plan written", extra={"output_path": str(output_path)})
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
