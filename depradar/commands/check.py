"""Check command implementation for depradar.

Reads one or more dependency manifests, asks each ecosystem's registry for
the newest published versions, and reports every direct dependency as
``current``, ``outdated`` or ``major``.

Typical usage::

    # Check the manifest(s) in the current directory
    $ depradar check

    # A specific manifest, only what needs attention
    $ depradar check frontend/package.json --outdated-only

    # Machine-readable JSON output
    $ depradar check Cargo.toml --format json > report.json
"""

from __future__ import annotations

import sys
import json
import click
import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from depradar.core import VersionChecker
from depradar.ecosystems import Ecosystem
from depradar.exceptions import DepRadarError, EmptyBatchError
from depradar.models import DependencyResult, Status
from depradar.context import pass_context, DepRadarContext
from depradar.commands.common import (
    build_http_client,
    build_registry,
    resolve_manifests,
)
from depradar.utils import (
    get_logger,
    get_update_type,
    print_error,
    print_success,
    print_table,
    print_warning,
    get_raw_console,
    colorize_status,
    safe_read_file,
)

logger = get_logger("commands.check")

ManifestReport = Tuple[Path, Ecosystem, List[DependencyResult]]


@click.command()
@click.argument(
    "file",
    type=click.Path(exists=True, path_type=Path),
    default=".",
)
@click.option(
    "--ecosystem",
    "-e",
    help="Ecosystem of FILE (npm, go, python, php, rust, dotnet, maven). "
    "Detected from the filename when omitted.",
)
@click.option(
    "--outdated-only",
    is_flag=True,
    help="Show only dependencies with available updates.",
)
@click.option(
    "--format",
    "-f",
    type=click.Choice(["table", "simple", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@pass_context
def check(
    ctx: DepRadarContext,
    file: Path,
    ecosystem: Optional[str],
    outdated_only: bool,
    format: str,
) -> None:
    """Check dependency manifests for newer versions.

    FILE is a manifest (package.json, go.mod, requirements.txt, Pipfile,
    pyproject.toml, composer.json, Cargo.toml, *.csproj, pom.xml,
    build.gradle) or a directory containing them.

    Exits:
        0 if every dependency is current, 1 if updates are available or an
        error occurred.
    """
    try:
        has_updates = asyncio.run(
            _check_async(ctx, file, ecosystem, outdated_only, format.lower())
        )
        sys.exit(1 if has_updates else 0)

    except (click.UsageError, click.BadParameter):
        raise
    except DepRadarError as e:
        print_error(f"{e}")
        sys.exit(1)
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        logger.exception("Error in check command")
        sys.exit(1)


# ---------------------------------------------------------------------------
# Async orchestration
# ---------------------------------------------------------------------------


async def _check_async(
    ctx: DepRadarContext,
    file: Path,
    ecosystem: Optional[str],
    outdated_only: bool,
    format: str,
) -> bool:
    """Check every resolved manifest and render the results.

    Returns:
        ``True`` if any dependency is outdated or behind a major version.

    Raises:
        EmptyBatchError: No manifest produced a single result.
    """
    config = ctx.config
    manifests = resolve_manifests(file, ecosystem)
    reports: List[ManifestReport] = []

    async with build_http_client(config) as http:
        checker = VersionChecker(build_registry(http, config), concurrency=config.concurrency)

        for path, adapter in manifests:
            content = safe_read_file(path)
            try:
                results = await checker.check_manifest(content, adapter, filename=path.name)
            except EmptyBatchError as exc:
                if len(manifests) == 1:
                    raise
                print_warning(f"{path.name}: {exc}")
                continue
            reports.append((path, adapter, results))

    if not reports:
        raise EmptyBatchError(attempted=len(manifests))

    has_updates = any(
        r.status is not Status.CURRENT for _, _, results in reports for r in results
    )

    if outdated_only:
        reports = [
            (path, adapter, [r for r in results if r.status is not Status.CURRENT])
            for path, adapter, results in reports
        ]

    if format == "json":
        _display_json(reports)
    elif format == "simple":
        _display_simple(reports)
    else:
        for path, adapter, results in reports:
            _display_table(path, adapter, results)
        if not has_updates:
            print_success("All dependencies are up to date")

    return has_updates


# ---------------------------------------------------------------------------
# Display renderers
# ---------------------------------------------------------------------------


def _update_type(adapter: Ecosystem, result: DependencyResult) -> str:
    if result.status is Status.CURRENT:
        return "-"
    parsed = adapter.normalize_specifier(result.current_version)
    return get_update_type(parsed.cleaned if parsed else None, result.target_version)


def _create_table_row(adapter: Ecosystem, result: DependencyResult) -> Dict[str, str]:
    """Build a Rich-formatted table row dictionary for one dependency."""
    stable = result.latest_stable or "[dim]-[/dim]"
    latest = result.latest_version
    if result.is_prerelease:
        latest = f"{latest} [dim](pre)[/dim]"
    return {
        "Status": colorize_status(result.status.value),
        "Package": result.name,
        "Declared": result.current_version,
        "Latest": latest,
        "Stable": stable if result.latest_stable != result.latest_version else "[dim]=[/dim]",
        "Update": _update_type(adapter, result),
        "License": result.license or "[dim]-[/dim]",
        "Last Update": (result.last_update or "")[:10] or "[dim]-[/dim]",
    }


def _display_table(path: Path, adapter: Ecosystem, results: List[DependencyResult]) -> None:
    """Render one manifest's results as a Rich table."""
    if not results:
        print_success(f"{path.name}: nothing to report")
        return

    column_styles: Dict[str, Dict[str, Any]] = {
        "Status": {"justify": "center", "no_wrap": True, "width": 10},
        "Package": {"style": "bold cyan", "no_wrap": True},
        "Declared": {"justify": "center", "style": "dim"},
        "Latest": {"justify": "center", "style": "bold green"},
        "Stable": {"justify": "center"},
        "Update": {"justify": "center"},
        "License": {"justify": "left"},
        "Last Update": {"justify": "center", "no_wrap": True},
    }

    print_table(
        [_create_table_row(adapter, r) for r in results],
        title=f"{adapter.display_name} dependencies ({path.name})",
        column_styles=column_styles,
    )


def _display_simple(reports: List[ManifestReport]) -> None:
    """One line per dependency: ``[STATUS] name  declared → target``."""
    console = get_raw_console()
    for _, _, results in reports:
        for result in results:
            console.print(
                f"[{result.status.value.upper()}] {result.name:30} "
                f"{result.current_version:15} → {result.target_version}",
                markup=False,
                highlight=False,
            )


def _display_json(reports: List[ManifestReport]) -> None:
    data = [
        {
            "manifest": str(path),
            "ecosystem": adapter.name,
            "dependencies": [r.to_json() for r in results],
        }
        for path, adapter, results in reports
    ]
    click.echo(json.dumps(data, indent=2))
