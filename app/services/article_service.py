"""
Article service: business logic for the Article aggregate.

Design notes
------------
- List/detail reads go through the cache-aside pattern (Redis, falling
  back to the DB).  Cache keys encode every dimension that affects the
  result.
- Plain CRUD functions flush but do not commit; the ``get_db`` dependency
  owns that transaction boundary.
- The bulk workflows (``delete_articles``,
  ``delete_articles_below_upvote_threshold``, ``upvote``, ``downvote``)
  own their boundary through ``run_in_transaction`` and never touch the
  cache; the router invalidates once the unit has committed.
- Bulk statements run with ``synchronize_session=False`` so ``rowcount``
  is the plain DBAPI count on every dialect.
"""
import logging
import math
import re
import time

from sqlalchemy import asc, delete, desc, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from app.cache import article_detail_key, article_list_key, cache
from app.config import settings
from app.database import run_in_transaction
from app.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationError,
    classify_integrity_error,
)
from app.models import Article, Category, User
from app.schemas import ArticleCreate, ArticleUpdate, PaginatedResponse

logger = logging.getLogger(__name__)

_BULK = {"synchronize_session": False}

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SPACE_RE = re.compile(r"[\s_]+")
_SLUG_DASH_RE = re.compile(r"-+")

# Columns that are safe to sort by; guards against arbitrary attribute access.
_SORTABLE_COLUMNS: frozenset[str] = frozenset({"created_at", "upvotes", "title"})


def slugify(text: str) -> str:
    """Return a URL-safe, lowercase slug derived from *text*."""
    text = _SLUG_STRIP_RE.sub("", text.lower().strip())
    text = _SLUG_SPACE_RE.sub("-", text)
    return _SLUG_DASH_RE.sub("-", text).strip("-")


def _resolve_sort_column(sort_by: str):
    if sort_by in _SORTABLE_COLUMNS:
        return getattr(Article, sort_by)
    return Article.created_at


async def _unique_slug(db: AsyncSession, title: str, exclude_id: int | None = None) -> str:
    """
    Slug for *title*, suffixed with a Unix timestamp when another article
    already owns it.
    """
    slug = slugify(title)
    q = select(Article.id).where(Article.slug == slug)
    if exclude_id is not None:
        q = q.where(Article.id != exclude_id)
    if (await db.execute(q)).first() is not None:
        slug = f"{slug}-{int(time.time())}"
    return slug


async def _resolve_categories(db: AsyncSession, category_ids: list[int]) -> list[Category]:
    """
    Return the Category rows for *category_ids*.

    Raises ValidationError when any id is unknown; linking an article to a
    missing category would otherwise surface as a raw FK violation.
    """
    wanted = set(category_ids)
    if not wanted:
        return []
    result = await db.execute(
        select(Category).where(Category.id.in_(sorted(wanted))).order_by(Category.id)
    )
    categories = list(result.scalars().all())
    if len(categories) != len(wanted):
        raise ValidationError("Wrong category id provided")
    return categories


async def _flush_or_translate(db: AsyncSession, article: Article) -> None:
    try:
        await db.flush()
    except IntegrityError as exc:
        kind = classify_integrity_error(exc)
        if kind == "unique":
            raise ConflictError(f"Article slug {article.slug!r} is already taken") from exc
        if kind == "foreign_key":
            raise NotFoundError("User", article.author_id) from exc
        raise


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _serialize_user(author) -> dict | None:
    if author is None:
        return None
    return {
        "id": author.id,
        "username": author.username,
        "email": author.email,
        "display_name": author.display_name,
        "bio": author.bio,
        "created_at": author.created_at.isoformat() if author.created_at else None,
    }


def article_to_dict(article: Article) -> dict:
    """Serialise an Article ORM instance to a plain dict (list view)."""
    return {
        "id": article.id,
        "title": article.title,
        "slug": article.slug,
        "upvotes": article.upvotes,
        "created_at": article.created_at.isoformat() if article.created_at else None,
        "author_id": article.author_id,
        "author": _serialize_user(article.author),
        "categories": [{"id": c.id, "name": c.name} for c in article.categories],
    }


def _article_detail_to_dict(article: Article) -> dict:
    data = article_to_dict(article)
    data["content"] = article.content
    data["comments"] = [
        {
            "id": c.id,
            "content": c.content,
            "author_name": c.author_name,
            "article_id": c.article_id,
            "created_at": c.created_at.isoformat() if c.created_at else None,
        }
        for c in article.comments
    ]
    return data


async def _load_article(db: AsyncSession, article_id: int, *, with_comments: bool = False) -> Article | None:
    options = [joinedload(Article.author), selectinload(Article.categories)]
    if with_comments:
        options.append(selectinload(Article.comments))
    q = (
        select(Article)
        .where(Article.id == article_id)
        .options(*options)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(q)
    return result.unique().scalar_one_or_none()


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_articles(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> PaginatedResponse:
    """
    Return a paginated list of articles, using Redis as a cache layer.

    Two SQL statements are issued on a cache miss: a COUNT and a SELECT
    with LIMIT/OFFSET, author JOIN and a categories SELECT IN load.
    """
    cache_key = article_list_key(page, page_size, sort_by, sort_order)
    cached = await cache.get(cache_key)
    if cached:
        return PaginatedResponse(**cached)

    total: int = (await db.execute(select(func.count()).select_from(Article))).scalar_one()

    sort_col = _resolve_sort_column(sort_by)
    order_expr = desc(sort_col) if sort_order == "desc" else asc(sort_col)

    articles_q = (
        select(Article)
        .options(joinedload(Article.author), selectinload(Article.categories))
        .order_by(order_expr, Article.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(articles_q)
    articles = result.unique().scalars().all()

    response = PaginatedResponse(
        items=[article_to_dict(a) for a in articles],
        total=total,
        page=page,
        page_size=page_size,
        pages=math.ceil(total / page_size) if total > 0 else 0,
    )
    await cache.set(cache_key, response.model_dump(), ttl=settings.CACHE_TTL_LIST)
    return response


async def get_article(db: AsyncSession, article_id: int) -> dict | None:
    """
    Return the detail dict for *article_id* (content, categories and
    comments), or None when the article does not exist.
    """
    cache_key = article_detail_key(article_id)
    cached = await cache.get(cache_key)
    if cached:
        return cached

    article = await _load_article(db, article_id, with_comments=True)
    if article is None:
        return None

    data = _article_detail_to_dict(article)
    await cache.set(cache_key, data, ttl=settings.CACHE_TTL_DETAIL)
    return data


# ---------------------------------------------------------------------------
# Single-row writes (transaction owned by get_db)
# ---------------------------------------------------------------------------

async def create_article(db: AsyncSession, data: ArticleCreate) -> dict:
    """
    Create a new article and return its detail dict.

    Raises NotFoundError for an unknown author and ValidationError for an
    unknown category id.
    """
    author = await db.get(User, data.author_id)
    if author is None:
        raise NotFoundError("User", data.author_id)

    categories = await _resolve_categories(db, data.category_ids)
    article = Article(
        title=data.title,
        slug=await _unique_slug(db, data.title),
        content=data.content,
        upvotes=0,
        author_id=author.id,
    )
    article.categories = categories
    db.add(article)
    await _flush_or_translate(db, article)

    await cache.invalidate_articles()
    data = _article_detail_to_dict(article)
    data["author"] = _serialize_user(author)
    return data


async def update_article(
    db: AsyncSession, article_id: int, data: ArticleUpdate
) -> dict | None:
    """
    Partially update an article and return its detail dict, or None when
    it does not exist.  Only fields set in the payload are modified.
    """
    article = await _load_article(db, article_id, with_comments=True)
    if article is None:
        return None

    update_data = data.model_dump(exclude_unset=True)
    category_ids: list[int] | None = update_data.pop("category_ids", None)

    for field, value in update_data.items():
        setattr(article, field, value)

    if "title" in update_data:
        article.slug = await _unique_slug(db, update_data["title"], exclude_id=article.id)

    if category_ids is not None:
        article.categories = await _resolve_categories(db, category_ids)

    await _flush_or_translate(db, article)
    await cache.invalidate_articles([article_id])
    return _article_detail_to_dict(article)


async def delete_article(db: AsyncSession, article_id: int) -> bool:
    """
    Delete the article identified by *article_id*.

    Returns True on success, False when the article does not exist.
    Category links and comments go with it through ON DELETE CASCADE.
    """
    result = await db.execute(
        delete(Article).where(Article.id == article_id).execution_options(**_BULK)
    )
    if result.rowcount == 0:
        return False
    await cache.invalidate_articles([article_id])
    return True


async def reassign_articles(db: AsyncSession, previous_author_id: int, new_author_id: int) -> int:
    """
    Point every article of *previous_author_id* at *new_author_id*.

    Flush-only building block for ``user_service.delete_user``; returns
    the number of rows moved.
    """
    result = await db.execute(
        update(Article)
        .where(Article.author_id == previous_author_id)
        .values(author_id=new_author_id)
        .execution_options(**_BULK)
    )
    return result.rowcount


# ---------------------------------------------------------------------------
# Transactional workflows
# ---------------------------------------------------------------------------

async def delete_articles(db: AsyncSession, ids: list[int]) -> dict:
    """
    Delete every article in *ids* as one unit.

    If fewer rows are deleted than ids were passed, at least one id did
    not exist or was repeated: NotFoundError is raised and nothing is
    deleted.
    """

    async def _work(tx: AsyncSession) -> dict:
        result = await tx.execute(
            delete(Article).where(Article.id.in_(sorted(set(ids)))).execution_options(**_BULK)
        )
        if result.rowcount != len(ids):
            logger.warning(
                "Batch delete aborted: %d of %d articles deleted", result.rowcount, len(ids)
            )
            raise NotFoundError(
                "Article",
                list(ids),
                "One of the articles could not be deleted",
            )
        return {"deleted_count": result.rowcount}

    outcome = await run_in_transaction(db, _work)
    logger.info("Batch deleted %d article(s)", outcome["deleted_count"])
    return outcome


async def delete_articles_below_upvote_threshold(db: AsyncSession, threshold: int) -> dict:
    """
    Delete every article whose ``upvotes`` is strictly below *threshold*.

    Selection and deletion run in the same transaction, and the delete
    targets exactly the selected id set.  An empty selection is a client
    error (ValidationError) and mutates nothing.
    """

    async def _work(tx: AsyncSession) -> dict:
        selected = await tx.execute(
            select(Article.id).where(Article.upvotes < threshold).with_for_update()
        )
        ids = list(selected.scalars().all())
        if not ids:
            logger.warning("Threshold delete found no articles with upvotes < %d", threshold)
            raise ValidationError(f"No articles found with upvotes < {threshold}")

        await tx.execute(delete(Article).where(Article.id.in_(ids)).execution_options(**_BULK))
        return {"deleted_count": len(ids)}

    outcome = await run_in_transaction(db, _work)
    logger.info(
        "Deleted %d article(s) with upvotes < %d", outcome["deleted_count"], threshold
    )
    return outcome


async def upvote(db: AsyncSession, article_id: int) -> dict:
    """
    Increment ``upvotes`` by one.

    No pre-read: the UPDATE itself reports a missing row, which surfaces
    as NotFoundError.
    """

    async def _work(tx: AsyncSession) -> dict:
        result = await tx.execute(
            update(Article)
            .where(Article.id == article_id)
            .values(upvotes=Article.upvotes + 1)
            .execution_options(**_BULK)
        )
        if result.rowcount == 0:
            raise NotFoundError("Article", article_id)
        return article_to_dict(await _load_article(tx, article_id))

    return await run_in_transaction(db, _work)


async def downvote(db: AsyncSession, article_id: int) -> dict:
    """
    Decrement ``upvotes`` by one, refusing to go below zero.

    The current value is read under a row lock first; a missing article
    raises NotFoundError and an article at zero raises ValidationError,
    both before anything is written.
    """

    async def _work(tx: AsyncSession) -> dict:
        current = await tx.execute(
            select(Article.upvotes).where(Article.id == article_id).with_for_update()
        )
        upvotes = current.scalar_one_or_none()
        if upvotes is None:
            raise NotFoundError("Article", article_id)
        if upvotes <= 0:
            raise ValidationError("Upvotes cannot go below 0")

        await tx.execute(
            update(Article)
            .where(Article.id == article_id)
            .values(upvotes=Article.upvotes - 1)
            .execution_options(**_BULK)
        )
        return article_to_dict(await _load_article(tx, article_id))

    return await run_in_transaction(db, _work)
