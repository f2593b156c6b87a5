from __future__ import annotations

from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from blog_api.config import settings
from blog_api.database import Base

SLUG_MAX_LENGTH = 100


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Category
# ---------------------------------------------------------------------------
class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    background_color: Mapped[str] = mapped_column(
        String(9), nullable=False, default=settings.DEFAULT_BACKGROUND_COLOR
    )
    font_color: Mapped[str] = mapped_column(
        String(9), nullable=False, default=settings.DEFAULT_FONT_COLOR
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=_utcnow, nullable=True
    )

    # lazy="raise": posts are never pulled in through a category
    posts: Mapped[List["Post"]] = relationship(
        "Post", back_populates="category", lazy="raise", passive_deletes=True
    )


# ---------------------------------------------------------------------------
# Post
# ---------------------------------------------------------------------------
class Post(Base):
    __tablename__ = "posts"

    __table_args__ = (
        # Listing order: publish date, then creation time
        Index("ix_posts_publish_date_created_at", "publish_date", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    author_email: Mapped[str] = mapped_column(String(255), nullable=False)
    custom_url: Mapped[Optional[str]] = mapped_column(
        String(SLUG_MAX_LENGTH), unique=True, nullable=True, index=True
    )

    banner_image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    social_image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # SEO metadata
    meta_description: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    social_title: Mapped[Optional[str]] = mapped_column(String(170), nullable=True)
    social_description: Mapped[Optional[str]] = mapped_column(String(240), nullable=True)
    seo_keywords: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    youtube_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    publish_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=_utcnow, nullable=True
    )

    # No ON DELETE action: category deletion reassigns posts to the
    # sentinel category before the row goes away.
    category_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("categories.id"), nullable=True, index=True
    )

    # lazy="raise" to prevent N+1; services load the category explicitly
    category: Mapped[Optional["Category"]] = relationship(
        "Category", back_populates="posts", lazy="raise"
    )
