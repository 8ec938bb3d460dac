"""Utility functions for gtfsproxy."""

from pathlib import Path


def get_templates_dir() -> Path:
    """Get the path to the bundled configuration templates."""
    return Path(__file__).parent / "templates"
