"""
Job board application service.
"""

from .board import (
    CREATED_INDEX,
    REQUIRED_JOB_FIELDS,
    STATUS_INDEX,
    TYPE_INDEX,
    JobBoard,
    job_defaults,
)

__all__ = [
    "CREATED_INDEX",
    "REQUIRED_JOB_FIELDS",
    "STATUS_INDEX",
    "TYPE_INDEX",
    "JobBoard",
    "job_defaults",
]
