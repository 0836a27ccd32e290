"""CLI subcommands for depradar."""
