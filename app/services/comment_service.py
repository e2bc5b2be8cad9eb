"""
Comment service: append-only comments on an Article.

Comments cannot be edited or deleted through the API; they disappear
only with their article (ON DELETE CASCADE), which is how the user and
category cascades remove them.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import cache
from app.models import Article, Comment
from app.schemas import CommentCreate


async def add_comment(
    db: AsyncSession,
    article_id: int,
    data: CommentCreate,
) -> dict | None:
    """
    Append a new comment to *article_id*.

    Returns the serialised comment, or None when the article does not
    exist.  The article's detail cache entry is dropped so the next read
    includes the comment.
    """
    result = await db.execute(select(Article.id).where(Article.id == article_id))
    if result.scalar_one_or_none() is None:
        return None

    comment = Comment(
        content=data.content,
        author_name=data.author_name,
        article_id=article_id,
    )
    db.add(comment)
    await db.flush()

    await cache.invalidate_articles([article_id])

    return {
        "id": comment.id,
        "content": comment.content,
        "author_name": comment.author_name,
        "article_id": comment.article_id,
        "created_at": comment.created_at.isoformat() if comment.created_at else None,
    }
