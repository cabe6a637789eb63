"""
Common utilities for SentinelNet.
"""

from .scheduling import LoopScheduler, Scheduler, TaskGroup

__all__ = ["LoopScheduler", "Scheduler", "TaskGroup"]
