"""
Service layer: orchestration, deletion workers and short id strategies.
"""

from .deleter import DeletionJob, DeletionWorkerPool, JobState
from .link_service import ShortenerService

__all__ = ["DeletionJob", "DeletionWorkerPool", "JobState", "ShortenerService"]
