from homeview.jobs.scheduler import JobScheduler, JobState, ScheduledJob

__all__ = ["JobScheduler", "JobState", "ScheduledJob"]
