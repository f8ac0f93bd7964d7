"""Media asset models: binary files, images and the tags attached to images."""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


image_tags = Table(
    "image_tags",
    Base.metadata,
    Column("image_id", ForeignKey("images.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", ForeignKey("media_tags.id", ondelete="CASCADE"), primary_key=True),
)


class MediaTag(Base):
    """Tag used to categorise images; tagged images are kept by cleanup."""
    __tablename__ = "media_tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow
    )


class File(Base):
    """
    Stored binary attachment (audio, video, pdf).
    
    Attributes:
        id: Primary key
        filename: Stored file name
        mime_type: MIME type of the file
        filesize: Size in bytes
        created_at: Upload timestamp
        updated_at: Last update timestamp
        deleted_at: Set when the file is in the trash
    """
    __tablename__ = "files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    filename: Mapped[str] = mapped_column(Text, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    filesize: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True
    )


class Image(Base):
    """
    Stored image with editorial metadata.
    
    Attributes:
        id: Primary key
        filename: Stored file name
        mime_type: MIME type of the image
        alt: Alternative text
        credit: Attribution or copyright information
        created_at: Upload timestamp
        updated_at: Last update timestamp
        deleted_at: Set when the image is in the trash
        tags: Tags categorising this image
    """
    __tablename__ = "images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    filename: Mapped[str] = mapped_column(Text, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    alt: Mapped[str] = mapped_column(Text, nullable=False, default="")
    credit: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True
    )

    tags: Mapped[list["MediaTag"]] = relationship(
        "MediaTag",
        secondary=image_tags
    )
