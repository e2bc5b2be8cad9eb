"""
Category service: CRUD for categories plus the two cross-entity
workflows, duplicate merging and cascade deletion.

Category names are not unique at the storage layer, so duplicates can
build up through ``create_category`` / ``update_category``.
``merge_categories`` folds every group of same-named categories into the
one with the lowest id.  Articles keep their association and simply
point at the survivor.  ``delete_category_with_articles`` is the
destructive counterpart: it removes the category and every article
linked to it.
"""
import logging

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.cache import CATEGORY_LIST_KEY, cache
from app.database import run_in_transaction
from app.exceptions import NotFoundError
from app.models import Article, Category, article_categories
from app.schemas import CategoryCreate, CategoryUpdate
from app.services.article_service import article_to_dict

logger = logging.getLogger(__name__)

_BULK = {"synchronize_session": False}


def _category_to_dict(category: Category) -> dict:
    return {"id": category.id, "name": category.name}


# ---------------------------------------------------------------------------
# CRUD (transaction owned by get_db)
# ---------------------------------------------------------------------------

async def get_categories(db: AsyncSession) -> list[dict]:
    cached = await cache.get(CATEGORY_LIST_KEY)
    if cached is not None:
        return cached

    result = await db.execute(select(Category).order_by(Category.id))
    data = [_category_to_dict(c) for c in result.scalars().all()]
    await cache.set(CATEGORY_LIST_KEY, data)
    return data


async def get_category(db: AsyncSession, category_id: int) -> dict | None:
    """Return the category with its linked articles, or None."""
    q = (
        select(Category)
        .where(Category.id == category_id)
        .options(selectinload(Category.articles))
    )
    category = (await db.execute(q)).scalar_one_or_none()
    if category is None:
        return None

    data = _category_to_dict(category)
    data["articles"] = [article_to_dict(a) for a in category.articles]
    return data


async def create_category(db: AsyncSession, data: CategoryCreate) -> dict:
    category = Category(name=data.name)
    db.add(category)
    await db.flush()
    await cache.invalidate_categories()
    return _category_to_dict(category)


async def update_category(db: AsyncSession, category_id: int, data: CategoryUpdate) -> dict | None:
    category = await db.get(Category, category_id)
    if category is None:
        return None
    category.name = data.name
    await db.flush()
    await cache.invalidate_categories()
    return _category_to_dict(category)


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------

def group_duplicates(categories: list[Category]) -> list[tuple[Category, list[Category]]]:
    """
    Group *categories* by exact name and return ``(survivor, duplicates)``
    for every name shared by two or more rows.

    The survivor is the member with the lowest id, whatever order
    *categories* arrives in.  Groups come back ordered by survivor id.
    """
    groups: dict[str, list[Category]] = {}
    for category in sorted(categories, key=lambda c: c.id):
        groups.setdefault(category.name, []).append(category)

    merges = [(members[0], members[1:]) for members in groups.values() if len(members) > 1]
    merges.sort(key=lambda pair: pair[0].id)
    return merges


async def _relink_articles(tx: AsyncSession, duplicate_id: int, survivor_id: int) -> list[int]:
    """
    Move every article link from *duplicate_id* to *survivor_id*.

    Articles already linked to the survivor only lose the duplicate link,
    so the composite primary key never sees the same pair twice.
    """
    linked = await tx.execute(
        select(article_categories.c.article_id)
        .where(article_categories.c.category_id == duplicate_id)
        .order_by(article_categories.c.article_id)
    )
    article_ids = list(linked.scalars().all())
    if not article_ids:
        return []

    already = await tx.execute(
        select(article_categories.c.article_id).where(
            article_categories.c.category_id == survivor_id,
            article_categories.c.article_id.in_(article_ids),
        )
    )
    already_linked = set(already.scalars().all())

    await tx.execute(
        delete(article_categories).where(article_categories.c.category_id == duplicate_id)
    )
    missing = [a for a in article_ids if a not in already_linked]
    if missing:
        await tx.execute(
            insert(article_categories),
            [{"article_id": a, "category_id": survivor_id} for a in missing],
        )
    return article_ids


async def merge_categories(db: AsyncSession) -> list[dict]:
    """
    Merge every group of same-named categories into its lowest-id member.

    For each duplicate, its article links are moved to the survivor and
    then the duplicate row is deleted.  All groups are handled in one
    transaction, so either every duplicate is merged or none is.  A run
    with no duplicate names issues no writes.

    Returns one report per merged name (empty list on a no-op run).
    """

    async def _work(tx: AsyncSession) -> list[dict]:
        result = await tx.execute(
            select(Category)
            .order_by(Category.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        reports = []
        for survivor, duplicates in group_duplicates(list(result.scalars().all())):
            relinked: set[int] = set()
            for duplicate in duplicates:
                relinked.update(await _relink_articles(tx, duplicate.id, survivor.id))
                deleted = await tx.execute(
                    delete(Category).where(Category.id == duplicate.id).execution_options(**_BULK)
                )
                if deleted.rowcount == 0:
                    raise NotFoundError("Category", duplicate.id)
                tx.expunge(duplicate)
            reports.append(
                {
                    "name": survivor.name,
                    "survivor_id": survivor.id,
                    "removed_ids": [d.id for d in duplicates],
                    "relinked_article_ids": sorted(relinked),
                }
            )
        return reports

    reports = await run_in_transaction(db, _work)
    if reports:
        logger.info(
            "Merged %d duplicate category group(s), removed %d row(s)",
            len(reports),
            sum(len(r["removed_ids"]) for r in reports),
        )
    else:
        logger.info("Category merge found no duplicates")
    return reports


# ---------------------------------------------------------------------------
# Cascade delete
# ---------------------------------------------------------------------------

async def delete_category_with_articles(db: AsyncSession, category_id: int) -> dict:
    """
    Delete *category_id* and every article linked to it, as one unit.

    Articles are destroyed, not unlinked.  Raises NotFoundError (nothing
    deleted) when the category does not exist.
    """

    async def _work(tx: AsyncSession) -> dict:
        q = (
            select(Category)
            .where(Category.id == category_id)
            .options(selectinload(Category.articles))
            .execution_options(populate_existing=True)
        )
        category = (await tx.execute(q)).scalar_one_or_none()
        if category is None:
            logger.warning("Cascade delete aborted: category %d not found", category_id)
            raise NotFoundError("Category", category_id)

        article_ids = sorted(a.id for a in category.articles)
        if article_ids:
            await tx.execute(
                delete(Article).where(Article.id.in_(article_ids)).execution_options(**_BULK)
            )
        deleted = await tx.execute(
            delete(Category).where(Category.id == category_id).execution_options(**_BULK)
        )
        if deleted.rowcount == 0:
            raise NotFoundError("Category", category_id)
        for article in category.articles:
            tx.expunge(article)
        tx.expunge(category)
        return {"category_id": category_id, "deleted_article_ids": article_ids}

    outcome = await run_in_transaction(db, _work)
    logger.info(
        "Deleted category %d with %d article(s)",
        category_id,
        len(outcome["deleted_article_ids"]),
    )
    return outcome
