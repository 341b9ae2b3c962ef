"""Command line entry points for devcert."""
