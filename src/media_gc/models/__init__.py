"""Database models for media-gc."""

from .content import Author, Lecture, Lesson, Meditation, Page
from .database import Base, get_async_session, init_db
from .job import Job, JobStatus, JobType
from .media import File, Image, MediaTag, image_tags

__all__ = [
    "Author",
    "Lecture",
    "Lesson",
    "Meditation",
    "Page",
    "File",
    "Image",
    "MediaTag",
    "image_tags",
    "Job",
    "JobStatus",
    "JobType",
    "Base",
    "get_async_session",
    "init_db",
]
