from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from media_gc.config.settings import CleanupConfig, get_cleanup_config
from media_gc.exceptions import CleanupAlreadyRunningError
from media_gc.logging_config import logger
from media_gc.models.database import async_session_maker, get_async_session
from media_gc.models.job import Job
from media_gc.services.cleanup_jobs import CleanupJobRunner, job_to_dict

router = APIRouter(prefix="/jobs", tags=["jobs"])


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory used by cleanup runs."""
    return async_session_maker


def get_job_config() -> CleanupConfig:
    """Cleanup configuration used by cleanup runs."""
    return get_cleanup_config()


@router.get("/")
async def list_jobs(
    status: str | None = None,
    job_type: str | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_async_session)
):
    """List all jobs with optional filtering and pagination.
    
    Args:
        status: Filter by job status
        job_type: Filter by job type
        page: Page number (1-indexed)
        page_size: Number of items per page
        session: Database session
        
    Returns:
        Paginated list of jobs
    """
    query = select(Job)
    
    if status:
        query = query.where(Job.status == status)
    
    if job_type:
        query = query.where(Job.job_type == job_type)
    
    total_result = await session.execute(
        select(func.count()).select_from(query.subquery())
    )
    total = total_result.scalar_one()
    
    query = query.order_by(Job.created_at.desc())
    query = query.offset((page - 1) * page_size).limit(page_size)
    
    result = await session.execute(query)
    jobs = result.scalars().all()
    
    return {
        "total": total,
        "page": page,
        "page_size": page_size,
        "jobs": [job_to_dict(job) for job in jobs]
    }


@router.get("/{job_id}")
async def get_job(
    job_id: str,
    session: AsyncSession = Depends(get_async_session)
):
    """Get details of a specific job.
    
    Args:
        job_id: Job identifier
        session: Database session
        
    Returns:
        Job details
    """
    result = await session.execute(select(Job).where(Job.job_id == job_id))
    job = result.scalar_one_or_none()
    
    if not job:
        raise HTTPException(
            status_code=404,
            detail=f"Job not found: {job_id}"
        )
    
    return job_to_dict(job)


@router.post("/media-cleanup")
async def run_media_cleanup(
    dry_run: bool | None = None,
    max_operations: int | None = Query(None, ge=0),
    grace_period_hours: float | None = Query(None, ge=0),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    config: CleanupConfig = Depends(get_job_config),
):
    """Run an orphaned media cleanup pass now.
    
    Args:
        dry_run: Report what would be removed without removing it
        max_operations: Override the configured operation budget
        grace_period_hours: Override the configured grace period
        
    Returns:
        The finished job, including its counters
    """
    runner = CleanupJobRunner(session_factory, config)
    
    try:
        return await runner.run(
            max_operations=max_operations,
            grace_period_hours=grace_period_hours,
            dry_run=dry_run,
        )
    except CleanupAlreadyRunningError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Media cleanup request failed: {e}")
        raise HTTPException(status_code=500, detail=f"Media cleanup failed: {e}")
