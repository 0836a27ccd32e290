"""
Command-line interface for depradar.

This module provides the main CLI entry point and handles global options,
configuration loading, and command registration.
"""

from __future__ import annotations

import os
import sys
import logging
from pathlib import Path
from typing import Optional

import click

from depradar.config import load_config
from depradar.__version__ import __version__
from depradar.context import DepRadarContext
from depradar.exceptions import ConfigError, DepRadarError
from depradar.utils.logger import get_logger, setup_logging
from depradar.utils.console import print_error, print_warning, reconfigure_console
from depradar.commands.audit import audit
from depradar.commands.check import check

logger = get_logger("cli")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file.",
    envvar="DEPRADAR_CONFIG",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (can be repeated: -v, -vv).",
)
@click.option(
    "--color/--no-color",
    default=True,
    help="Enable or disable colored output.",
    envvar="DEPRADAR_COLOR",
)
@click.version_option(
    version=__version__,
    prog_name="depradar",
    message="%(prog)s %(version)s",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[Path],
    verbose: int,
    color: bool,
) -> None:
    """depradar: dependency freshness and advisory radar.

    \b
    Available commands:
      depradar check              Report outdated dependencies
      depradar audit              Report known vulnerabilities

    \b
    Examples:
      depradar check package.json
      depradar check . --outdated-only
      depradar -v audit composer.json

    Use ``depradar COMMAND --help`` for command-specific options.
    """
    _configure_logging(verbose)

    try:
        loaded_config = load_config(config)
    except ConfigError as exc:
        print_error(str(exc))
        raise SystemExit(1) from exc

    radar_ctx = DepRadarContext()
    radar_ctx.config_path = config or loaded_config.source_path
    radar_ctx.color = color
    radar_ctx.verbose = verbose
    radar_ctx.config = loaded_config
    ctx.obj = radar_ctx

    # Respect NO_COLOR for downstream libraries
    if color:
        os.environ.pop("NO_COLOR", None)
    else:
        os.environ["NO_COLOR"] = "1"
    reconfigure_console()

    logger.debug("depradar v%s", __version__)
    logger.debug("Config path: %s", radar_ctx.config_path)
    logger.debug("Verbosity: %s | Color: %s", verbose, color)


def _configure_logging(verbose: int) -> None:
    """Configure logging level based on verbosity flags."""
    if verbose <= 0:
        level = logging.WARNING
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    setup_logging(level=level)
    logger.debug("Logging initialized at %s level", logging.getLevelName(level))


cli.add_command(check)
cli.add_command(audit)


def main() -> int:
    """Main entry point for the depradar CLI.

    Returns:
        Exit code:
            0   Success
            1   Updates or vulnerabilities found, or an application error
            2   Usage error (Click)
            130 Interrupted by user (Ctrl+C)
    """
    try:
        cli(standalone_mode=False)
        return 0

    except click.ClickException as exc:
        exc.show()
        return exc.exit_code

    except click.exceptions.Exit as exc:
        return exc.exit_code

    except click.Abort:
        print_warning("\nOperation cancelled by user")
        return 130

    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 1

    except DepRadarError as exc:
        print_error(str(exc))
        logger.debug(
            "DepRadarError details: %s",
            exc.details or "<none>",
            exc_info=True,
        )
        return 1

    except KeyboardInterrupt:
        print_warning("\nOperation cancelled by user")
        return 130

    except Exception as exc:
        print_error(f"Unexpected error: {exc}")
        logger.exception("Unhandled exception in CLI")
        return 1


if __name__ == "__main__":
    sys.exit(main())
