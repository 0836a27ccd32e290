"""Audit command implementation for depradar.

Checks the versions declared in dependency manifests against public
vulnerability advisories (OSV.dev, Packagist, NuGet).

Typical usage::

    $ depradar audit package.json
    $ depradar audit composer.json --format json
"""

from __future__ import annotations

import sys
import json
import click
import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from depradar.core import VulnerabilityScanner
from depradar.ecosystems import Ecosystem
from depradar.exceptions import DepRadarError, EmptyBatchError
from depradar.models import VulnerabilityReport
from depradar.context import pass_context, DepRadarContext
from depradar.commands.common import (
    build_http_client,
    build_registry,
    resolve_manifests,
)
from depradar.utils import (
    get_logger,
    print_error,
    print_success,
    print_table,
    print_warning,
    get_raw_console,
    colorize_severity,
    safe_read_file,
)

logger = get_logger("commands.audit")

AuditReport = Tuple[Path, Ecosystem, VulnerabilityReport]


@click.command()
@click.argument(
    "file",
    type=click.Path(exists=True, path_type=Path),
    default=".",
)
@click.option(
    "--ecosystem",
    "-e",
    help="Ecosystem of FILE. Detected from the filename when omitted.",
)
@click.option(
    "--format",
    "-f",
    type=click.Choice(["table", "simple", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@pass_context
def audit(
    ctx: DepRadarContext,
    file: Path,
    ecosystem: Optional[str],
    format: str,
) -> None:
    """Audit declared dependency versions for known vulnerabilities.

    Exits:
        0 if no advisory affects a declared version, 1 if at least one
        does or an error occurred.
    """
    try:
        vulnerable = asyncio.run(_audit_async(ctx, file, ecosystem, format.lower()))
        sys.exit(1 if vulnerable else 0)

    except (click.UsageError, click.BadParameter):
        raise
    except DepRadarError as e:
        print_error(f"{e}")
        sys.exit(1)
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        logger.exception("Error in audit command")
        sys.exit(1)


async def _audit_async(
    ctx: DepRadarContext,
    file: Path,
    ecosystem: Optional[str],
    format: str,
) -> bool:
    """Audit every resolved manifest and render the findings.

    Returns:
        ``True`` if any package is affected by an advisory.
    """
    config = ctx.config
    manifests = resolve_manifests(file, ecosystem)
    reports: List[AuditReport] = []

    async with build_http_client(config) as http:
        scanner = VulnerabilityScanner(
            build_registry(http, config),
            max_packages=config.max_audit_packages,
            concurrency=config.concurrency,
        )
        for path, adapter in manifests:
            entries = adapter.extract_entries(safe_read_file(path), path.name)
            dependencies = {e.name: e.raw_specifier for e in entries}
            try:
                report = await scanner.scan(dependencies, adapter)
            except EmptyBatchError as exc:
                if len(manifests) == 1:
                    raise
                print_warning(f"{path.name}: {exc}")
                continue
            reports.append((path, adapter, report))

    if not reports:
        raise EmptyBatchError("No dependencies to audit", attempted=len(manifests))

    vulnerable = any(report.vulnerable_packages for _, _, report in reports)

    if format == "json":
        _display_json(reports)
    elif format == "simple":
        _display_simple(reports)
    else:
        for path, adapter, report in reports:
            _display_table(path, adapter, report)
        if not vulnerable:
            print_success("No known vulnerabilities found")

    return vulnerable


# ---------------------------------------------------------------------------
# Display renderers
# ---------------------------------------------------------------------------


def _display_table(path: Path, adapter: Ecosystem, report: VulnerabilityReport) -> None:
    rows: List[Dict[str, str]] = []
    for package in report.vulnerable_packages:
        for vuln in package.vulnerabilities:
            rows.append(
                {
                    "Severity": colorize_severity(vuln.severity.value),
                    "Package": package.package_name,
                    "Declared": package.current_version,
                    "Advisory": vuln.cve or vuln.advisory_id,
                    "Title": vuln.title,
                    "Affected": vuln.affected_versions,
                }
            )

    summary = report.summary()
    caption = (
        f"{summary['vulnerable']} of {summary['total']} packages affected: "
        f"{summary['critical']} critical, {summary['high']} high, "
        f"{summary['moderate']} moderate, {summary['low']} low"
    )
    if not rows:
        print_success(f"{path.name}: {summary['total']} packages, no known vulnerabilities")
        return

    column_styles: Dict[str, Dict[str, Any]] = {
        "Severity": {"justify": "center", "no_wrap": True},
        "Package": {"style": "bold cyan", "no_wrap": True},
        "Declared": {"justify": "center", "style": "dim"},
        "Advisory": {"no_wrap": True},
        "Title": {"no_wrap": False},
        "Affected": {"style": "dim"},
    }
    print_table(
        rows,
        title=f"{adapter.display_name} advisories ({path.name})",
        caption=caption,
        column_styles=column_styles,
        show_row_lines=True,
    )


def _display_simple(reports: List[AuditReport]) -> None:
    console = get_raw_console()
    for _, _, report in reports:
        for package in report.vulnerable_packages:
            for vuln in package.vulnerabilities:
                console.print(
                    f"[{vuln.severity.value.upper()}] {package.package_name} "
                    f"{package.current_version}: {vuln.cve or vuln.advisory_id} {vuln.title}",
                    markup=False,
                    highlight=False,
                )


def _display_json(reports: List[AuditReport]) -> None:
    data = [
        {"manifest": str(path), "ecosystem": adapter.name, **report.to_json()}
        for path, adapter, report in reports
    ]
    click.echo(json.dumps(data, indent=2))
