"""
API package for the Patient Flow Engine.
"""

from .main import app, create_app

__all__ = ["app", "create_app"]
