"""Command-line runner (Typer-based).

Runs or lists the context specifications of one module without going
through pytest, which is handy in CI jobs that want a machine-readable
report::

    contextspec list tests/specs/test_calculator.py
    contextspec --log-level DEBUG run my_project.specs --format json

``TARGET`` is either a dotted module name or a path to a ``.py`` file.

Exit codes:

* ``0`` — every variant passed;
* ``1`` — at least one variant failed or errored, or a method's
  variants could not be built;
* ``2`` — invalid configuration;
* ``3`` — the target module could not be imported.
"""

from __future__ import annotations

import importlib
import importlib.util
import json
import logging
import sys
from pathlib import Path
from types import ModuleType
from typing import Annotated, Any, get_args

import typer
from pydantic import ValidationError

from contextspec import __version__
from contextspec._errors import build_error_payload
from contextspec._hierarchy import FixtureNode
from contextspec._lifecycle import run_variant
from contextspec._logging import configure_logging
from contextspec._results import Outcome, VariantResult
from contextspec._settings import LoggingSettings, Settings
from contextspec._suite import build_suite, collect_fixtures

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_CONFIG_ERROR = 2
EXIT_IMPORT_ERROR = 3

# ---------------------------------------------------------------------------
# Allowed values (extracted from LoggingSettings Literal types)
# ---------------------------------------------------------------------------

_VALID_LOG_LEVELS: tuple[str, ...] = get_args(
    LoggingSettings.model_fields["level"].annotation,
)
_VALID_LOG_FORMATS: tuple[str, ...] = get_args(
    LoggingSettings.model_fields["format"].annotation,
)
_REPORT_FORMATS = ("text", "json")


def load_target(target: str) -> ModuleType:
    """Import *target*, a dotted module name or a path to a ``.py`` file.

    A file's directory is put on ``sys.path`` first, so that the file
    can import its sibling modules.
    """
    path = Path(target)
    if path.suffix != ".py":
        return importlib.import_module(target)

    resolved = path.resolve()
    if not resolved.is_file():
        msg = f"No such file: {target}"
        raise ImportError(msg)
    parent = str(resolved.parent)
    if parent not in sys.path:
        sys.path.insert(0, parent)
    spec = importlib.util.spec_from_file_location(resolved.stem, resolved)
    if spec is None or spec.loader is None:
        msg = f"Cannot load {target}"
        raise ImportError(msg)
    module = importlib.util.module_from_spec(spec)
    sys.modules[spec.name] = module
    spec.loader.exec_module(module)
    return module


def _build(target: str, settings: Settings) -> list[FixtureNode]:
    try:
        module = load_target(target)
    except Exception as exc:
        logger.error("Cannot import %s: %s", target, exc)
        typer.echo(f"Cannot import {target}: {type(exc).__name__}: {exc}", err=True)
        raise typer.Exit(EXIT_IMPORT_ERROR) from exc
    return [build_suite(fixture, settings) for fixture in collect_fixtures(module)]


def _path_of(node: FixtureNode) -> str:
    return " > ".join(n.name for n in node.path)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


def _echo_tree(nodes: list[FixtureNode]) -> None:
    variants = errors = 0
    for node in nodes:
        suffix = " (template)" if node.abstract else ""
        typer.echo(f"{_path_of(node)}{suffix}")
        for variant in node.variants:
            typer.echo(f"  {variant.name}")
        for method_name, error in node.build_errors.items():
            typer.echo(f"  ! {method_name}: {error}")
        variants += len(node.variants)
        errors += len(node.build_errors)
    typer.echo(f"{len(nodes)} fixtures, {variants} variants, {errors} build errors")


def _summary(results: list[VariantResult], build_errors: int) -> dict[str, Any]:
    counts = {outcome.value: 0 for outcome in Outcome}
    for result in results:
        counts[result.outcome.value] += 1
    return {
        **counts,
        "build_errors": build_errors,
        "duration": sum(result.duration for result in results),
    }


def _echo_text(
    results: list[VariantResult],
    failed_builds: list[tuple[str, Exception]],
) -> None:
    for result in results:
        if result.passed:
            typer.echo(f"PASSED  {result.name}")
        else:
            typer.echo(result.describe())
    for name, error in failed_builds:
        typer.echo(f"BUILD ERROR  {name}: {error}")
    summary = _summary(results, len(failed_builds))
    typer.echo(
        f"{summary['passed']} passed, {summary['failed']} failed, "
        f"{summary['errored']} errored, {summary['build_errors']} build errors "
        f"in {summary['duration']:.2f}s"
    )


def _echo_json(
    results: list[VariantResult],
    failed_builds: list[tuple[str, Exception]],
) -> None:
    report = {
        "results": [
            {
                "name": result.name,
                "outcome": result.outcome.value,
                "duration": result.duration,
                "failures": result.failures,
                "from_audit": result.from_audit,
                "phases": [phase.value for phase in result.phases],
                "error": (
                    build_error_payload(result.error, variant=result.name).to_dict()
                    if result.error is not None
                    else None
                ),
            }
            for result in results
        ],
        "build_errors": [
            build_error_payload(error, variant=name).to_dict() for name, error in failed_builds
        ],
        "summary": _summary(results, len(failed_builds)),
    }
    typer.echo(json.dumps(report, indent=2, default=str))


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def build_cli() -> typer.Typer:
    """Construct the ``contextspec`` Typer app.

    The callback parses the global options (``--version``,
    ``--log-level``, ``--log-format``, ``--env-file``), loads
    :class:`Settings` and configures logging; the ``list`` and ``run``
    commands read the settings from the Typer context.
    """
    cli = typer.Typer(help="Run and inspect context specifications.")

    # -- global options -------------------------------------------------------

    @cli.callback(invoke_without_command=True)
    def main(
        ctx: typer.Context,
        version_flag: Annotated[
            bool | None,
            typer.Option(
                "--version",
                is_eager=True,
                help="Show version and exit.",
            ),
        ] = None,
        log_level: Annotated[
            str | None,
            typer.Option("--log-level", help="Override log level."),
        ] = None,
        log_format: Annotated[
            str | None,
            typer.Option("--log-format", help="Override log format."),
        ] = None,
        env_file: Annotated[
            str,
            typer.Option("--env-file", help="Path to .env file."),
        ] = ".env",
    ) -> None:
        # -- version ---------------------------------------------------------
        if version_flag:
            typer.echo(f"contextspec v{__version__}")
            raise typer.Exit()

        if ctx.invoked_subcommand is None:
            typer.echo(ctx.get_help())
            raise typer.Exit()

        # -- validate enum-like options -------------------------------------
        if log_level is not None and log_level.upper() not in _VALID_LOG_LEVELS:
            raise typer.BadParameter(
                f"Invalid log level '{log_level}'. "
                f"Choose from: {', '.join(_VALID_LOG_LEVELS)}",
                param_hint="'--log-level'",
            )

        if log_format is not None and log_format.lower() not in _VALID_LOG_FORMATS:
            raise typer.BadParameter(
                f"Invalid log format '{log_format}'. "
                f"Choose from: {', '.join(_VALID_LOG_FORMATS)}",
                param_hint="'--log-format'",
            )

        # -- build settings -------------------------------------------------
        try:
            settings = Settings(_env_file=env_file)  # type: ignore[call-arg]
        except ValidationError as exc:
            logger.error("Configuration error: %s", exc)
            typer.echo(f"Configuration error: {exc}", err=True)
            raise typer.Exit(EXIT_CONFIG_ERROR) from exc

        # -- apply CLI overrides --------------------------------------------
        if log_level is not None:
            settings.logging = settings.logging.model_copy(
                update={"level": log_level.upper()},
            )

        if log_format is not None:
            settings.logging = settings.logging.model_copy(
                update={"format": log_format.lower()},
            )

        configure_logging(settings.logging, version=__version__)
        ctx.obj = settings

    # -- commands -------------------------------------------------------------

    @cli.command("list")
    def list_command(
        ctx: typer.Context,
        target: Annotated[
            str,
            typer.Argument(help="Module name or path to a .py file."),
        ],
    ) -> None:
        """Print the fixture tree of TARGET with its variants."""
        _echo_tree(_build(target, ctx.obj))

    @cli.command("run")
    def run_command(
        ctx: typer.Context,
        target: Annotated[
            str,
            typer.Argument(help="Module name or path to a .py file."),
        ],
        output_format: Annotated[
            str,
            typer.Option("--format", help="Report format: text or json."),
        ] = "text",
    ) -> None:
        """Run every variant of TARGET and report the results."""
        if output_format.lower() not in _REPORT_FORMATS:
            raise typer.BadParameter(
                f"Invalid format '{output_format}'. Choose from: {', '.join(_REPORT_FORMATS)}",
                param_hint="'--format'",
            )
        settings: Settings = ctx.obj
        nodes = _build(target, settings)

        results: list[VariantResult] = []
        failed_builds: list[tuple[str, Exception]] = []
        for node in nodes:
            results.extend(run_variant(variant, settings=settings) for variant in node.variants)
            failed_builds.extend(
                (f"{node.fixture.__qualname__}.{method_name}", error)
                for method_name, error in node.build_errors.items()
            )

        if output_format.lower() == "json":
            _echo_json(results, failed_builds)
        else:
            _echo_text(results, failed_builds)

        if failed_builds or not all(result.passed for result in results):
            raise typer.Exit(EXIT_FAILURES)

    return cli


def main() -> None:
    """Console-script entry point."""
    build_cli()(prog_name="contextspec")
