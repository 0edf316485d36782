"""Models layer - SQLAlchemy ORM models.

All models inherit from the Base class defined in core.database.
"""

from page_optimizer.core.database import Base
from page_optimizer.models.activity_log import ActivityLog, ActivityType
from page_optimizer.models.job import Job, JobStatus
from page_optimizer.models.page import Page, PageStatus
from page_optimizer.models.site import Site

__all__ = [
    "ActivityLog",
    "ActivityType",
    "Base",
    "Job",
    "JobStatus",
    "Page",
    "PageStatus",
    "Site",
]
