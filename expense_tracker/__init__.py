"""Expense tracking backend with CRUD handlers and aggregated reports.

Exposes the package version for runtime checks and CLI banners.
"""

from __future__ import annotations

__all__ = [
    "__version__",
    "cli",
    "config",
    "crud",
    "database",
    "models",
    "reporting",
    "schemas",
    "server",
]

__version__ = "1.0.0"
