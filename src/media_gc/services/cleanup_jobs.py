"""Job bookkeeping and single-flight guard around cleanup runs."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from media_gc.cleanup.job import MediaCleanupJob
from media_gc.config.settings import CleanupConfig
from media_gc.exceptions import CleanupAlreadyRunningError
from media_gc.logging_config import logger
from media_gc.models.job import Job, JobStatus, JobType
from media_gc.services.store import SqlAlchemyDocumentStore


def job_to_dict(job: Job) -> Dict[str, Any]:
    return {
        "job_id": job.job_id,
        "job_type": job.job_type,
        "status": job.status,
        "params": job.params,
        "result": job.result,
        "error_message": job.error_message,
        "created_at": job.created_at.isoformat() if job.created_at else None,
        "updated_at": job.updated_at.isoformat() if job.updated_at else None,
        "airflow_dag_run_id": job.airflow_dag_run_id,
    }


class CleanupJobRunner:
    """Runs MediaCleanupJob and records every run as a Job row.

    Only one media cleanup may be running at a time. A running job renews its
    lease after every step of the run; one that has not been updated for
    ``lease_minutes`` is considered dead, marked failed and no longer blocks
    new runs.

    The check-then-insert in ``_start`` relies on the database serialising
    writers (SQLite does). On a backend with concurrent writers, add a
    unique constraint or row lock on the running media-cleanup job.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: CleanupConfig | None = None,
    ):
        """Initialize the runner.

        Args:
            session_factory: Factory for the job and store sessions
            config: Cleanup configuration
        """
        self.session_factory = session_factory
        self.config = config or CleanupConfig()

    async def run(
        self,
        *,
        max_operations: int | None = None,
        grace_period_hours: float | None = None,
        dry_run: bool | None = None,
        airflow_dag_run_id: str | None = None,
        now: datetime | None = None,
    ) -> Dict[str, Any]:
        """Run one cleanup pass under the lease.

        Returns:
            The finished job as a dict

        Raises:
            CleanupAlreadyRunningError: If another run holds the lease
            Exception: Whatever aborted the cleanup run, after the job row
                has been marked failed
        """
        params = {
            "max_operations": self.config.max_operations if max_operations is None else max_operations,
            "grace_period_hours": (
                self.config.grace_period_hours if grace_period_hours is None else grace_period_hours
            ),
            "dry_run": self.config.dry_run if dry_run is None else dry_run,
        }

        async with self.session_factory() as session:
            job = await self._start(session, params, airflow_dag_run_id)

            async def heartbeat(step: str) -> None:
                job.updated_at = datetime.now(timezone.utc)
                await session.commit()
                logger.bind(job_id=job.job_id, step=step).debug("Media cleanup job heartbeat")

            try:
                async with self.session_factory() as store_session:
                    store = SqlAlchemyDocumentStore(store_session)
                    result = await MediaCleanupJob(store, self.config).run(
                        now=now,
                        heartbeat=heartbeat,
                        **params,
                    )
            except Exception as e:
                job.status = JobStatus.FAILED.value
                job.error_message = str(e)
                await session.commit()
                logger.bind(job_id=job.job_id, error=str(e)).error("Media cleanup job failed")
                raise

            job.status = JobStatus.SUCCESS.value
            job.result = result.to_dict()
            await session.commit()
            await session.refresh(job)

            logger.bind(job_id=job.job_id, **result.to_dict()).info("Media cleanup job finished")
            return job_to_dict(job)

    async def _start(
        self,
        session: AsyncSession,
        params: Dict[str, Any],
        airflow_dag_run_id: str | None,
    ) -> Job:
        lease_start = datetime.now(timezone.utc) - timedelta(minutes=self.config.lease_minutes)

        expired = await session.execute(
            update(Job)
            .where(
                Job.job_type == JobType.MEDIA_CLEANUP.value,
                Job.status == JobStatus.RUNNING.value,
                Job.updated_at < lease_start,
            )
            .values(status=JobStatus.FAILED.value, error_message="Lease expired")
        )
        if expired.rowcount:
            logger.warning(f"Marked {expired.rowcount} stale media cleanup job(s) as failed")

        running = await session.execute(
            select(Job).where(
                Job.job_type == JobType.MEDIA_CLEANUP.value,
                Job.status == JobStatus.RUNNING.value,
            )
        )
        holder = running.scalars().first()
        if holder is not None:
            await session.commit()
            raise CleanupAlreadyRunningError(
                "Another media cleanup job is running",
                {"job_id": holder.job_id},
            )

        job = Job(
            job_type=JobType.MEDIA_CLEANUP.value,
            params=params,
            status=JobStatus.RUNNING.value,
            airflow_dag_run_id=airflow_dag_run_id,
        )
        session.add(job)
        await session.commit()

        logger.bind(job_id=job.job_id, **params).info("Media cleanup job started")
        return job
