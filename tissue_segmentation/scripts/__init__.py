"""Command-line entry points."""
