"""
User service: CRUD for the User aggregate plus account deletion.

Users are fetched without caching because the list is small and changes
infrequently.  ``delete_user`` is the one cross-entity workflow here: it
disposes of the user's articles (reassign or delete) and removes the
user row as a single transaction.
"""
import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.database import run_in_transaction
from app.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationError,
    classify_integrity_error,
)
from app.models import Article, User
from app.schemas import UserCreate
from app.services import article_service

logger = logging.getLogger(__name__)

_BULK = {"synchronize_session": False}


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _user_to_dict(user: User) -> dict:
    """Serialise a User ORM instance to a plain dict (list view)."""
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "display_name": user.display_name,
        "bio": user.bio,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def _article_summary_to_dict(article: Article) -> dict:
    """
    Lightweight article dict for embedding in a UserDetail response.
    Author and categories are omitted to avoid circular nesting.
    """
    return {
        "id": article.id,
        "title": article.title,
        "slug": article.slug,
        "upvotes": article.upvotes,
        "created_at": article.created_at.isoformat() if article.created_at else None,
        "author_id": article.author_id,
        "author": None,
        "categories": [],
    }


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_users(db: AsyncSession) -> list[dict]:
    """Return all users ordered by creation date (newest first)."""
    q = select(User).order_by(User.created_at.desc(), User.id.desc())
    result = await db.execute(q)
    return [_user_to_dict(u) for u in result.scalars().all()]


async def get_user(db: AsyncSession, user_id: int) -> dict | None:
    """
    Return the detail dict for *user_id* including a summary of their
    articles, or None when the user does not exist.
    """
    q = (
        select(User)
        .where(User.id == user_id)
        .options(selectinload(User.articles))
    )
    result = await db.execute(q)
    user = result.unique().scalar_one_or_none()
    if user is None:
        return None

    data = _user_to_dict(user)
    data["articles"] = [_article_summary_to_dict(a) for a in user.articles]
    return data


async def create_user(db: AsyncSession, data: UserCreate) -> dict:
    """
    Create a new user and return its serialised dict.

    Username and email uniqueness is enforced by the database; a
    violation is raised as ConflictError.
    """
    user = User(
        username=data.username,
        email=data.email,
        display_name=data.display_name,
        bio=data.bio,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as exc:
        if classify_integrity_error(exc) == "unique":
            raise ConflictError("A user with this username or email already exists") from exc
        raise
    return _user_to_dict(user)


async def delete_user(
    db: AsyncSession, user_id: int, new_author_id: int | None = None
) -> dict:
    """
    Delete *user_id* and dispose of their articles, as one transaction.

    With *new_author_id* every article is reassigned to that user;
    without it every article is deleted (comments and category links go
    through ON DELETE CASCADE).  The user row is removed last.  If it is
    missing, NotFoundError is raised and the article step is rolled back
    with it.

    Returns the deleted user as it was before deletion.
    """

    async def _work(tx: AsyncSession) -> dict:
        user = await tx.get(User, user_id)
        snapshot = _user_to_dict(user) if user is not None else None

        if new_author_id is not None:
            if await tx.get(User, new_author_id) is None:
                raise NotFoundError("User", new_author_id)
            moved = await article_service.reassign_articles(tx, user_id, new_author_id)
            logger.debug("Reassigned %d article(s) from user %d to %d", moved, user_id, new_author_id)
        else:
            result = await tx.execute(
                delete(Article)
                .where(Article.author_id == user_id)
                .execution_options(**_BULK)
            )
            logger.debug("Deleted %d article(s) of user %d", result.rowcount, user_id)

        try:
            result = await tx.execute(
                delete(User).where(User.id == user_id).execution_options(**_BULK)
            )
        except IntegrityError as exc:
            # Articles still point at the user, e.g. new_author_id == user_id.
            if classify_integrity_error(exc) == "foreign_key":
                raise ValidationError(f"User {user_id} still owns articles") from exc
            raise
        if result.rowcount == 0:
            logger.warning("User deletion aborted: user %d not found", user_id)
            raise NotFoundError("User", user_id)
        tx.expunge(user)
        return snapshot

    deleted = await run_in_transaction(db, _work)
    logger.info(
        "Deleted user %d (articles %s)",
        user_id,
        f"reassigned to {new_author_id}" if new_author_id is not None else "deleted",
    )
    return deleted
