"""Ignore-file handling."""
