"""Terminal user interface for bqui."""

from .app import BquiApp, CatalogView, build_app

__all__ = ["BquiApp", "CatalogView", "build_app"]
