"""Maintenance command-line scripts."""
