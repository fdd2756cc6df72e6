"""
Marketplace CLI - command line access to datasets, queries and mode selection.
"""

from __future__ import annotations

from .main import main, app

__all__ = ["main", "app"]
