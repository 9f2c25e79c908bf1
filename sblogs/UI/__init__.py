"""
sblogs UI Package
"""

from .app import LogsApp, run_app

__all__ = [
    'LogsApp',
    'run_app',
]
