"""Content documents that may reference media assets.

Only the columns that matter for reference discovery are modelled; the
editorial schema of each collection lives in the CMS.
"""

from datetime import datetime, timezone
from typing import Any, Optional, TYPE_CHECKING

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base

if TYPE_CHECKING:
    from .media import File, Image


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Author(Base):
    """Author profile with an optional portrait image."""
    __tablename__ = "authors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str | None] = mapped_column(String(200), unique=True, nullable=True)
    image_id: Mapped[int | None] = mapped_column(
        ForeignKey("images.id", ondelete="SET NULL"),
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow
    )

    image: Mapped[Optional["Image"]] = relationship("Image")


class Lecture(Base):
    """Recorded lecture with a thumbnail image."""
    __tablename__ = "lectures"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    thumbnail_id: Mapped[int | None] = mapped_column(
        ForeignKey("images.id", ondelete="SET NULL"),
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow
    )

    thumbnail: Mapped[Optional["Image"]] = relationship("Image")


class Meditation(Base):
    """Guided meditation with a thumbnail image."""
    __tablename__ = "meditations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    thumbnail_id: Mapped[int | None] = mapped_column(
        ForeignKey("images.id", ondelete="SET NULL"),
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow
    )

    thumbnail: Mapped[Optional["Image"]] = relationship("Image")


class Lesson(Base):
    """
    Lesson made of story panels.
    
    Attributes:
        id: Primary key
        title: Lesson title
        intro_audio: Audio file played before the panels
        icon: Lesson icon image
        panels: Ordered block list; "video" blocks carry a file id in
            "video", "text" blocks may carry an image id in "image"
    """
    __tablename__ = "lessons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    intro_audio_id: Mapped[int | None] = mapped_column(
        ForeignKey("files.id", ondelete="SET NULL"),
        nullable=True
    )
    icon_id: Mapped[int | None] = mapped_column(
        ForeignKey("images.id", ondelete="SET NULL"),
        nullable=True
    )
    panels: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow
    )

    intro_audio: Mapped[Optional["File"]] = relationship("File")
    icon: Mapped[Optional["Image"]] = relationship("Image")


class Page(Base):
    """Web page whose body is a Lexical rich-text document."""
    __tablename__ = "pages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow
    )
