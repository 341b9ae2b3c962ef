"""Core components of devcert."""
