"""Exports for dashboard API routers."""

from . import dashboard, site, system  # noqa: F401
