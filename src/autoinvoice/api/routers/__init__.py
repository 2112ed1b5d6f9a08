"""API routers."""

from . import auth, invoices

__all__ = ["auth", "invoices"]
