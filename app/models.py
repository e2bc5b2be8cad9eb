from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

# ---------------------------------------------------------------------------
# Association table: Article <-> Category (many-to-many)
#
# The composite primary key rules out duplicate (article, category) links;
# both foreign keys cascade so deleting either side drops its links.
# ---------------------------------------------------------------------------
article_categories = Table(
    "article_categories",
    Base.metadata,
    Column("article_id", Integer, ForeignKey("articles.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", Integer, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
)


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # No ORM cascade: user deletion reassigns or deletes articles explicitly.
    articles: Mapped[List["Article"]] = relationship(
        "Article", back_populates="author", lazy="noload", passive_deletes=True
    )


# ---------------------------------------------------------------------------
# Category
# ---------------------------------------------------------------------------
class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Deliberately not unique; duplicates are folded by merge_categories().
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    articles: Mapped[List["Article"]] = relationship(
        "Article",
        secondary=article_categories,
        back_populates="categories",
        lazy="noload",
        passive_deletes=True,
    )


# ---------------------------------------------------------------------------
# Article
# ---------------------------------------------------------------------------
class Article(Base):
    __tablename__ = "articles"
    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        CheckConstraint("upvotes >= 0", name="ck_articles_upvotes_non_negative"),
        # Author's articles sorted by date (profile page, reassignment scans)
        Index("ix_articles_author_id_created_at", "author_id", "created_at"),
        # Threshold deletes and "top voted" sorting
        Index("ix_articles_upvotes", "upvotes"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String(350), unique=True, nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    upvotes: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )

    # Relationships are lazy="noload"; services load what they need explicitly.
    author: Mapped["User"] = relationship("User", back_populates="articles", lazy="noload")
    comments: Mapped[List["Comment"]] = relationship(
        "Comment", back_populates="article", lazy="noload", passive_deletes=True
    )
    categories: Mapped[List["Category"]] = relationship(
        "Category",
        secondary=article_categories,
        back_populates="articles",
        lazy="noload",
        passive_deletes=True,
    )


# ---------------------------------------------------------------------------
# Comment
# ---------------------------------------------------------------------------
class Comment(Base):
    __tablename__ = "comments"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    author_name: Mapped[str] = mapped_column(String(150), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    article_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("articles.id", ondelete="CASCADE"), nullable=False, index=True
    )

    article: Mapped["Article"] = relationship("Article", back_populates="comments", lazy="noload")
