import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.cache import cache
from app.config import settings
from app.exceptions import ConflictError, DomainError, NotFoundError, ValidationError
from app.middleware import TimingMiddleware
from app.routers import articles, categories, metrics, users

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=settings.LOG_LEVEL)
    # Startup; the app works without Redis.
    await cache.connect()
    yield
    # Shutdown
    await cache.disconnect()

app = FastAPI(
    title="Blog API - Consistency Workflows",
    description="Blog API with transactional cross-entity workflows over users, articles and categories",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Domain error -> HTTP status
_STATUS_BY_ERROR: dict[type[DomainError], int] = {
    NotFoundError: 404,
    ValidationError: 400,
    ConflictError: 409,
}


async def _domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status_code = _STATUS_BY_ERROR.get(type(exc), 400)
    logger.info("%s %s -> %d: %s", request.method, request.url.path, status_code, exc.message)
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


for _error_class in _STATUS_BY_ERROR:
    app.add_exception_handler(_error_class, _domain_error_handler)

# Routers
app.include_router(articles.router)
app.include_router(categories.router)
app.include_router(users.router)
app.include_router(metrics.router)

@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
