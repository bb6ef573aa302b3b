"""Command line interface for orgpilot."""
