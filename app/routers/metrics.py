from fastapi import APIRouter, Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.models import Article, Category, Comment, User
from app.schemas import MetricsResponse
from app.cache import cache

router = APIRouter(prefix="/api/v1/metrics", tags=["metrics"])

@router.get("", response_model=MetricsResponse)
async def get_metrics(db: AsyncSession = Depends(get_db)):

    total_articles = (await db.execute(select(func.count()).select_from(Article))).scalar_one()

    total_categories = (await db.execute(select(func.count()).select_from(Category))).scalar_one()

    total_comments = (await db.execute(select(func.count()).select_from(Comment))).scalar_one()

    total_users = (await db.execute(select(func.count()).select_from(User))).scalar_one()

    total_upvotes = (await db.execute(select(func.coalesce(func.sum(Article.upvotes), 0)))).scalar_one()

    return MetricsResponse(
        total_articles=total_articles,
        total_categories=total_categories,
        total_comments=total_comments,
        total_users=total_users,
        total_upvotes=total_upvotes,
        cache_info=cache.stats,
    )
