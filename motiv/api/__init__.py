"""
Read-only HTTP status API for Motiv.
"""

from .main import create_app, run_server

__all__ = ["create_app", "run_server"]
