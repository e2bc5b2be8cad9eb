from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime


# --- Category ---

class CategoryBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class CategoryCreate(CategoryBase):
    pass


class CategoryUpdate(CategoryBase):
    pass


class CategoryResponse(CategoryBase):
    id: int
    model_config = ConfigDict(from_attributes=True)


class CategoryDetail(CategoryResponse):
    articles: list["ArticleResponse"] = []


class CategoryMergeReport(BaseModel):
    name: str
    survivor_id: int
    removed_ids: list[int]
    relinked_article_ids: list[int]


class CategoryCascadeResult(BaseModel):
    category_id: int
    deleted_article_ids: list[int]


# --- User ---

class UserBase(BaseModel):
    username: str = Field(max_length=50)
    email: str = Field(max_length=255)
    display_name: str | None = None
    bio: str | None = None


class UserCreate(UserBase):
    pass


class UserResponse(UserBase):
    id: int
    created_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


class UserDetail(UserResponse):
    articles: list["ArticleResponse"] = []


# --- Comment ---

class CommentBase(BaseModel):
    content: str
    author_name: str = Field(max_length=100)


class CommentCreate(CommentBase):
    pass


class CommentResponse(CommentBase):
    id: int
    article_id: int
    created_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


# --- Article ---

class ArticleBase(BaseModel):
    title: str = Field(max_length=200)
    content: str
    category_ids: list[int] = []


class ArticleCreate(ArticleBase):
    author_id: int


class ArticleUpdate(BaseModel):
    title: str | None = Field(None, max_length=200)
    content: str | None = None
    category_ids: list[int] | None = None


class ArticleResponse(BaseModel):
    id: int
    title: str
    slug: str
    upvotes: int
    created_at: datetime | None = None
    author_id: int
    author: UserResponse | None = None
    categories: list[CategoryResponse] = []
    model_config = ConfigDict(from_attributes=True)


class ArticleDetail(ArticleResponse):
    content: str
    comments: list[CommentResponse] = []


class ArticleBatchDelete(BaseModel):
    ids: list[int] = Field(min_length=1)


class DeletedCount(BaseModel):
    deleted_count: int


# --- Pagination ---

class PaginatedResponse(BaseModel):
    items: list  # Will be typed in router
    total: int
    page: int
    page_size: int
    pages: int


# --- Metrics ---

class MetricsResponse(BaseModel):
    total_articles: int
    total_categories: int
    total_comments: int
    total_users: int
    total_upvotes: int
    cache_info: dict = {}


# Required for forward-reference resolution
UserDetail.model_rebuild()
CategoryDetail.model_rebuild()
