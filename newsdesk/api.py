from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Optional

from newsdesk.config import settings
from newsdesk.errors import NewsdeskError
from newsdesk.models.items import ArticleCreate, ArticleUpdate, LiveUpdateCreate
from newsdesk.services.cache import cache
from newsdesk.services.database import db
from newsdesk.services.logger import logger
from newsdesk.workflows.articles import article_service, dump, DEFAULT_LIMIT, DEFAULT_PAGE
from newsdesk.workflows.feed import (
    feed_service, BLENDED_DEFAULT_LIMIT, GENERAL_DEFAULT_LIMIT, NEWS_DEFAULT_LIMIT, NEWS_DEFAULT_PAGE,
)

@asynccontextmanager
async def lifespan(app: FastAPI):
    await db.init()
    await cache.init()
    logger.info("Newsdesk API ready")
    yield
    logger.info("Newsdesk API shutting down")

app = FastAPI(title="Newsdesk Feed API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)

@app.exception_handler(NewsdeskError)
async def newsdesk_error_handler(request: Request, exc: NewsdeskError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"status": exc.status, "message": exc.message})

@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=500, content={"status": "error", "message": str(exc)})

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = {}
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"][1:]) or "body"
        errors[field] = err["msg"]
    return JSONResponse(
        status_code=400,
        content={"status": "fail", "message": "Validation failed", "errors": errors},
    )

def parse_positive_int(value: Optional[str], default: int) -> int:
    """Lenient query parsing: anything missing, non-numeric or below 1 gets the default."""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default

def success(data, cached: Optional[bool] = None) -> dict:
    body = {"status": "success"}
    if cached is not None:
        body["cached"] = cached
    body["data"] = data
    return body

@app.get("/status")
async def get_status():
    return {"status": "ok", "version": "1.0.0"}

# Feeds

@app.get("/feed")
async def get_feed(limit: Optional[str] = None):
    payload, cached = await feed_service.get_feed(parse_positive_int(limit, GENERAL_DEFAULT_LIMIT))
    return success(payload, cached)

@app.get("/feed/categories/{category}")
async def get_feed_by_category(category: str, limit: Optional[str] = None):
    payload, cached = await feed_service.get_feed_by_category(
        category, parse_positive_int(limit, BLENDED_DEFAULT_LIMIT)
    )
    return success(payload, cached)

@app.get("/feed/tags/{tag}")
async def get_feed_by_tags(tag: str, limit: Optional[str] = None):
    payload, cached = await feed_service.get_feed_by_tags(tag, parse_positive_int(limit, BLENDED_DEFAULT_LIMIT))
    return success(payload, cached)

@app.get("/news/category/{category}")
async def get_news_by_category(category: str, page: Optional[str] = None, limit: Optional[str] = None):
    payload, cached = await feed_service.get_news_by_category(
        category,
        parse_positive_int(page, NEWS_DEFAULT_PAGE),
        parse_positive_int(limit, NEWS_DEFAULT_LIMIT),
    )
    return success(payload, cached)

# Articles

@app.get("/articles")
async def list_articles(page: Optional[str] = None, limit: Optional[str] = None):
    payload, cached = await article_service.list_articles(
        parse_positive_int(page, DEFAULT_PAGE), parse_positive_int(limit, DEFAULT_LIMIT)
    )
    return {"status": "success", "cached": cached, **payload}

@app.get("/articles/headline")
async def get_headline():
    payload, cached = await article_service.get_headline()
    return success(payload, cached)

@app.get("/articles/category-headline/{category}")
async def get_category_headline(category: str):
    payload, cached = await article_service.get_category_headline(category)
    return success(payload, cached)

@app.get("/articles/similar/{slug}")
async def get_similar_articles(slug: str):
    payload, cached = await article_service.get_similar_articles(slug)
    return success(payload, cached)

@app.get("/articles/category/{category}")
async def list_articles_by_category(category: str, page: Optional[str] = None, limit: Optional[str] = None):
    payload, cached = await article_service.list_articles_by_category(
        category, parse_positive_int(page, DEFAULT_PAGE), parse_positive_int(limit, DEFAULT_LIMIT)
    )
    return {"status": "success", "cached": cached, **payload}

@app.get("/articles/{slug}")
async def get_article(slug: str):
    payload, cached = await article_service.get_article(slug)
    return success(payload, cached)

@app.post("/articles", status_code=201)
async def create_article(data: ArticleCreate):
    article = await article_service.create_article(data)
    return success({"article": dump(article)})

@app.put("/articles/{slug}")
async def update_article(slug: str, patch: ArticleUpdate):
    article = await article_service.update_article(slug, patch)
    return success({"article": dump(article)})

@app.post("/articles/{article_id}/live-updates")
async def add_live_update(article_id: str, data: LiveUpdateCreate):
    update = await article_service.add_live_update(article_id, data)
    return success({"update": update.model_dump(mode="json", by_alias=True)})

@app.patch("/articles/{article_id}/end-live")
async def end_live_article(article_id: str):
    article = await article_service.end_live_article(article_id)
    return success({"article": dump(article)})

@app.patch("/articles/{article_id}/mark-key/{update_id}")
async def mark_key_event(article_id: str, update_id: str):
    key_event = await article_service.mark_key_event(article_id, update_id)
    return success({"keyEvent": key_event.model_dump(mode="json", by_alias=True)})

@app.patch("/articles/{article_id}/promote-headline")
async def promote_headline(article_id: str):
    article = await article_service.promote_headline(article_id)
    return success({"article": dump(article)})

@app.patch("/articles/{article_id}/promote-category-headline")
async def promote_category_headline(article_id: str):
    article = await article_service.promote_headline(article_id, category=True)
    return success({"article": dump(article)})

@app.delete("/articles/{article_id}")
async def delete_article(article_id: str):
    await article_service.delete_article(article_id)
    return {"status": "success", "message": "Article deleted successfully"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.WEB_HOST, port=settings.WEB_PORT)
