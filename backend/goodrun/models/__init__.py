from goodrun.models.user import User
from goodrun.models.organisation import Organisation
from goodrun.models.job import Job
from goodrun.models.job_event import JobEvent

__all__ = ["User", "Organisation", "Job", "JobEvent"]
