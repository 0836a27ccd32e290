"""
Executable module for depradar.

Running:
    python -m depradar

is equivalent to:
    depradar
"""

from __future__ import annotations

import sys


def main() -> int:
    """Entrypoint when executing ``python -m depradar``.

    Returns:
        Exit code returned by the CLI.
    """
    from depradar.cli import main as cli_main

    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
