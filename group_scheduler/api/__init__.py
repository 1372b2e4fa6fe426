"""
Group Scheduler API module.

Provides the FastAPI HTTP surface over the event lifecycle services.
"""

from group_scheduler.api.main import app, run_server

__all__ = ["app", "run_server"]
