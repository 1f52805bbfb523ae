from . import documents, jobs, tasks

__all__ = ["documents", "jobs", "tasks"]
