"""
Group Scheduler: lifecycle orchestration for group events.
"""

__version__ = "0.1.0"
