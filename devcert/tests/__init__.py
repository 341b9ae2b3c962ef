"""Tests for devcert."""
