"""Abstract interface for scheduler run history."""

from abc import ABC, abstractmethod
from typing import Any

from stockledger.core.entities.job_run import JobRun, JobRunStatus, JobTrigger


class IJobRunStore(ABC):
    """Interface for job run persistence."""

    @abstractmethod
    async def start(self, job_name: str, triggered_by: JobTrigger) -> JobRun:
        """Record a run as RUNNING and return it with its id."""
        pass

    @abstractmethod
    async def complete(
        self,
        run_id: int,
        total: int,
        successful: int,
        failed: int,
        duration_ms: float,
        summary: dict[str, Any],
    ) -> None:
        """Mark a run COMPLETED with its record counts."""
        pass

    @abstractmethod
    async def fail(self, run_id: int, error_message: str, duration_ms: float) -> None:
        """Mark a run FAILED."""
        pass

    @abstractmethod
    async def fail_unfinished(self, error_message: str) -> int:
        """Mark every RUNNING run FAILED, e.g. runs cut off by a restart.

        Returns:
            Number of runs closed
        """
        pass

    @abstractmethod
    async def list_runs(
        self,
        job_name: str | None = None,
        status: JobRunStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[JobRun]:
        """List runs, most recent first."""
        pass

    @abstractmethod
    async def count_runs(
        self, job_name: str | None = None, status: JobRunStatus | None = None
    ) -> int:
        """Count runs matching the filters."""
        pass
