"""Airflow DAG for the orphaned media cleanup job.

Runs on the first day of every month:
1. Permanently delete media already in the trash
2. Scan content documents for media references
3. Move unreferenced media past the grace period to the trash

The run itself is a single task; partial progress is safe to retry because
every operation is idempotent per asset. ``max_active_runs=1`` keeps two
runs from overlapping; CleanupJobRunner's lease covers manual triggers.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any

from airflow import DAG
from airflow.decorators import task
from airflow.exceptions import AirflowException

from media_gc.config.settings import get_cleanup_config
from media_gc.exceptions import CleanupAlreadyRunningError
from media_gc.logging_config import configure_logging, logger
from media_gc.models.database import async_session_maker, init_db
from media_gc.services.cleanup_jobs import CleanupJobRunner

config = get_cleanup_config()

default_args = {
    "owner": "media-gc",
    "depends_on_past": False,
    "start_date": datetime(2024, 1, 1),
    "email_on_failure": False,
    "email_on_retry": False,
    "retries": config.retries,
    "retry_delay": timedelta(minutes=15),
}

dag = DAG(
    "media_cleanup_v1",
    default_args=default_args,
    description="Trash orphaned media and purge the media trash",
    schedule=config.schedule,
    catchup=False,
    max_active_runs=1,
    tags=["maintenance", "media"],
)


def run_async(coro):
    """Helper to run async functions in synchronous Airflow context."""
    return asyncio.run(coro)


@task(dag=dag)
def cleanup_orphaned_media(**context: Any) -> dict[str, Any]:
    """Run one cleanup pass and return its counters.

    Returns:
        The finished job record, pushed to XCom
    """
    configure_logging()
    dag_run = context.get("dag_run")
    run_id = dag_run.run_id if dag_run else None
    logger.info(f"Starting media cleanup for DAG run: {run_id}")

    async def _run() -> dict[str, Any]:
        await init_db()
        runner = CleanupJobRunner(async_session_maker, config)
        return await runner.run(airflow_dag_run_id=run_id)

    try:
        job = run_async(_run())
        logger.info(f"Media cleanup finished: {job['result']}")
        return job

    except CleanupAlreadyRunningError as e:
        logger.warning(f"Skipping media cleanup: {e}")
        raise AirflowException(f"Media cleanup already running: {e}")

    except Exception as e:
        logger.error(f"Media cleanup failed for DAG run {run_id}: {e}")
        raise AirflowException(f"Media cleanup failed: {e}")


cleanup_orphaned_media()
