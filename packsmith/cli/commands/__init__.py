"""Packsmith CLI subcommands."""
