"""Job model for tracking background maintenance jobs."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


class JobType(str, Enum):
    """Enumeration of job types."""
    MEDIA_CLEANUP = "media_cleanup"


class JobStatus(str, Enum):
    """Enumeration of job statuses."""
    QUEUED = "queued"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class Job(Base):
    """
    Job model for tracking background maintenance jobs.
    
    Attributes:
        job_id: Primary key UUID
        job_type: Type of job to execute
        params: Job parameters as JSON
        status: Current job status
        result: Job output counters as JSON
        airflow_dag_run_id: Airflow DAG run identifier
        created_at: Creation timestamp
        updated_at: Last update timestamp
        error_message: Error message if job failed
    """
    __tablename__ = "jobs"

    job_id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    job_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    params: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=JobStatus.QUEUED.value
    )
    result: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    airflow_dag_run_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
