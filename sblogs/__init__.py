"""
sblogs - Paginated terminal viewer for container and systemd service logs
"""

__version__ = "0.1.0"
