from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from app.cache import cache
from app.database import get_db
from app.dependencies import PaginationParams
from app.schemas import (
    ArticleBatchDelete,
    ArticleCreate,
    ArticleDetail,
    ArticleResponse,
    ArticleUpdate,
    CommentCreate,
    CommentResponse,
    DeletedCount,
    PaginatedResponse,
)
from app.services import article_service, comment_service

router = APIRouter(prefix="/api/v1/articles", tags=["articles"])

@router.get("", response_model=PaginatedResponse)
async def list_articles(
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.get_articles(
        db, pagination.page, pagination.page_size, pagination.sort_by, pagination.sort_order
    )

# Registered before "/{article_id}" routes so the literal paths win.
@router.delete("/low-upvotes", response_model=DeletedCount)
async def delete_low_upvote_articles(
    threshold: int = Query(..., description="Delete every article with fewer upvotes than this."),
    db: AsyncSession = Depends(get_db),
):
    outcome = await article_service.delete_articles_below_upvote_threshold(db, threshold)
    await cache.invalidate_all_articles()
    return outcome

@router.post("/batch-delete", response_model=DeletedCount)
async def delete_articles(data: ArticleBatchDelete, db: AsyncSession = Depends(get_db)):
    outcome = await article_service.delete_articles(db, data.ids)
    await cache.invalidate_articles(data.ids)
    return outcome

@router.get("/{article_id}", response_model=ArticleDetail)
async def get_article(article_id: int, db: AsyncSession = Depends(get_db)):
    article = await article_service.get_article(db, article_id)
    if not article:
        raise HTTPException(status_code=404, detail="Article not found")
    return article

@router.post("", status_code=201, response_model=ArticleDetail)
async def create_article(data: ArticleCreate, db: AsyncSession = Depends(get_db)):
    return await article_service.create_article(db, data)

@router.put("/{article_id}", response_model=ArticleDetail)
async def update_article(article_id: int, data: ArticleUpdate, db: AsyncSession = Depends(get_db)):
    article = await article_service.update_article(db, article_id, data)
    if not article:
        raise HTTPException(status_code=404, detail="Article not found")
    return article

@router.delete("/{article_id}", status_code=204)
async def delete_article(article_id: int, db: AsyncSession = Depends(get_db)):
    deleted = await article_service.delete_article(db, article_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Article not found")

@router.post("/{article_id}/upvote", response_model=ArticleResponse)
async def upvote(article_id: int, db: AsyncSession = Depends(get_db)):
    article = await article_service.upvote(db, article_id)
    await cache.invalidate_articles([article_id])
    return article

@router.post("/{article_id}/downvote", response_model=ArticleResponse)
async def downvote(article_id: int, db: AsyncSession = Depends(get_db)):
    article = await article_service.downvote(db, article_id)
    await cache.invalidate_articles([article_id])
    return article

@router.post("/{article_id}/comments", status_code=201, response_model=CommentResponse)
async def add_comment(article_id: int, data: CommentCreate, db: AsyncSession = Depends(get_db)):
    comment = await comment_service.add_comment(db, article_id, data)
    if not comment:
        raise HTTPException(status_code=404, detail="Article not found")
    return comment
