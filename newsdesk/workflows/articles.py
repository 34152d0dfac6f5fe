import math
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple
from newsdesk.config import settings
from newsdesk.errors import ArticleNotFound, ArticleValidationError
from newsdesk.models.items import (
    Article, ArticleCreate, ArticleUpdate, LiveContent, LiveUpdate, LiveUpdateCreate,
    PlainContent, utcnow,
)
from newsdesk.services.cache import (
    ARTICLE, ARTICLE_FAMILIES, ARTICLE_SIMILAR, ARTICLES_CATEGORY, ARTICLES_LIST,
    CATEGORY_HEADLINE, HEADLINE_MAIN, CacheGateway, article_keys, build_key, cache,
)
from newsdesk.services.database import ArticleFilter, Database, db
from newsdesk.services.logger import logger
from newsdesk.tools.content_meta import derive_meta_description, derive_meta_title, derive_slug

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
SIMILAR_LIMIT = 5
HEADLINE_SIMILAR_LIMIT = 3

Payload = Tuple[Dict[str, Any], bool]

def dump(article: Article) -> Dict[str, Any]:
    return article.model_dump(mode="json", by_alias=True)


class ArticleService:
    """
    Article write path and cached article reads.

    Every mutation that can change what a feed, list or headline shows sweeps
    the article cache families; changes confined to a single article's body
    only drop that article's own keys.
    """

    def __init__(
        self,
        store: Optional[Database] = None,
        cache_gateway: Optional[CacheGateway] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = db if store is None else store
        self.cache = cache if cache_gateway is None else cache_gateway
        self.clock = clock

    async def _invalidate(self, *articles: Article, families: bool = True):
        patterns = list(ARTICLE_FAMILIES) if families else []
        for article in articles:
            patterns.extend(article_keys(article))
        await self.cache.invalidate_families(*patterns)

    async def _require(self, article_id: str) -> Article:
        article = await self.store.find_by_id(article_id)
        if article is None:
            raise ArticleNotFound("Article not found")
        return article

    async def _displaced(self, article: Article, headline: bool, category_headline: bool) -> List[Article]:
        """Current holders that a save of `article` with these flags will demote."""
        holders = []
        if headline:
            holders += await self.store.find(ArticleFilter(is_headline=True, exclude_ids=[article.id]))
        if category_headline and article.category:
            holders += await self.store.find(ArticleFilter(
                categories_any=article.category, is_category_headline=True, exclude_ids=[article.id]
            ))
        return holders

    def _breaking_expiry(self, now: datetime) -> datetime:
        return now + timedelta(minutes=settings.BREAKING_WINDOW_MINUTES)

    # Writes

    async def create_article(self, data: ArticleCreate) -> Article:
        now = self.clock()

        if data.is_live:
            content = LiveContent(updates=[
                LiveUpdate(
                    content_title=data.title,
                    content_description=data.description,
                    content_detail=data.content,
                    content_image_url=data.content_image_url or data.image_url,
                    content_published_at=data.published_at,
                )
            ])
        else:
            content = PlainContent(text=data.content)

        article = Article(
            title=data.title,
            description=data.description,
            content=content,
            category=data.category,
            tags=data.tags,
            published_at=data.published_at,
            is_breaking=data.is_breaking,
            is_headline=data.is_headline,
            is_category_headline=data.is_category_headline,
            label=data.label,
            image_url=data.image_url,
            creator=data.creator or "Admin",
            source_name=data.source_name or settings.DEFAULT_SOURCE_NAME,
            meta_title=derive_meta_title(data.title),
            meta_description=derive_meta_description(data.title, data.description),
            breaking_expires_at=self._breaking_expiry(now) if data.is_breaking else None,
            created_at=now,
            updated_at=now,
        )
        article.slug = derive_slug(data.title) or article.id

        displaced = await self._displaced(article, article.is_headline, article.is_category_headline)
        await self.store.insert(article)
        await self._invalidate(article, *displaced)
        logger.info(f"Created article {article.slug} ({article.id})")
        return article

    async def update_article(self, slug: str, patch: ArticleUpdate) -> Article:
        existing = await self.store.find_by_slug(slug)
        if existing is None:
            raise ArticleNotFound("Article not found")

        now = self.clock()
        changes = {key: value for key, value in patch.model_dump(exclude_unset=True).items() if value is not None}

        # A headline is only replaced by promoting another article
        if existing.is_headline and not changes.get("is_headline"):
            changes.pop("is_headline", None)
        if existing.is_category_headline and not changes.get("is_category_headline"):
            changes.pop("is_category_headline", None)

        if changes.get("is_breaking") and not existing.is_breaking:
            changes["breaking_expires_at"] = self._breaking_expiry(now)
        elif changes.get("is_breaking") is False:
            changes["breaking_expires_at"] = None

        if "content" in changes:
            if isinstance(existing.content, LiveContent):
                raise ArticleValidationError("Live article content is changed through live updates")
            changes["content"] = PlainContent(text=changes["content"])

        if "title" in changes:
            changes["slug"] = derive_slug(changes["title"]) or existing.id
            changes["meta_title"] = derive_meta_title(changes["title"])
        if "description" in changes:
            changes["meta_description"] = derive_meta_description(
                changes.get("title", existing.title), changes["description"]
            )

        changes["updated_at"] = now
        article = existing.model_copy(update=changes)

        displaced = await self._displaced(article, article.is_headline, article.is_category_headline)
        await self.store.save(article)
        await self._invalidate(existing, article, *displaced)
        logger.info(f"Updated article {article.slug} ({article.id})")
        return article

    async def delete_article(self, article_id: str) -> None:
        article = await self._require(article_id)
        await self.store.delete(article_id)
        await self._invalidate(article)
        logger.info(f"Deleted article {article.slug} ({article.id})")

    async def add_live_update(self, article_id: str, data: LiveUpdateCreate) -> LiveUpdate:
        article = await self._require(article_id)
        if not article.is_live:
            raise ArticleValidationError("Article is not live")

        update = LiveUpdate(
            content_title=data.content_title,
            content_description=data.content_description,
            content_detail=data.content_detail,
            content_image_url=data.content_image_url,
            content_published_at=self.clock(),
            is_key=data.is_key,
        )
        content = LiveContent(updates=[*article.content.updates, update])
        await self.store.save(article.model_copy(update={"content": content, "updated_at": self.clock()}))
        await self._invalidate(article, families=False)
        return update

    async def mark_key_event(self, article_id: str, update_id: str) -> LiveUpdate:
        article = await self._require(article_id)
        updates = article.content.updates if isinstance(article.content, LiveContent) else []

        for index, update in enumerate(updates):
            if update.id == update_id:
                break
        else:
            raise ArticleNotFound("Update not found")

        key_event = update.model_copy(update={"is_key": True})
        content = LiveContent(updates=[*updates[:index], key_event, *updates[index + 1:]])
        await self.store.save(article.model_copy(update={"content": content, "updated_at": self.clock()}))
        await self._invalidate(article, families=False)
        return key_event

    async def end_live_article(self, article_id: str) -> Article:
        article = await self._require(article_id)
        ended = article.model_copy(update={"was_live": True, "updated_at": self.clock()})
        await self.store.save(ended)
        # isLive is part of the feed projection
        await self._invalidate(ended)
        logger.info(f"Ended live coverage for {ended.slug}")
        return ended

    async def promote_headline(self, article_id: str, category: bool = False) -> Article:
        article = await self._require(article_id)
        displaced = await self._displaced(article, headline=not category, category_headline=category)
        if category:
            await self.store.promote_category_headline(article.id)
        else:
            await self.store.promote_headline(article.id)
        promoted = await self._require(article_id)
        await self._invalidate(promoted, *displaced)
        logger.info(f"Promoted {promoted.slug} to {'category ' if category else ''}headline")
        return promoted

    # Cached reads

    async def list_articles(self, page: int = DEFAULT_PAGE, limit: int = DEFAULT_LIMIT) -> Payload:
        async def build():
            articles = await self.store.find(skip=(page - 1) * limit, limit=limit)
            total = await self.store.count()
            return {
                "results": len(articles),
                "total": total,
                "totalPages": math.ceil(total / limit),
                "currentPage": page,
                "data": {"articles": [dump(a) for a in articles]},
            }

        return await self.cache.read_through(
            build_key(ARTICLES_LIST, page, limit), settings.ARTICLE_LIST_CACHE_TTL, build
        )

    async def list_articles_by_category(self, category: str, page: int = DEFAULT_PAGE, limit: int = DEFAULT_LIMIT) -> Payload:
        async def build():
            filter = ArticleFilter(category_exact=category)
            articles = await self.store.find(filter, skip=(page - 1) * limit, limit=limit)
            total = await self.store.count(filter)
            return {
                "category": category,
                "results": len(articles),
                "total": total,
                "totalPages": math.ceil(total / limit),
                "currentPage": page,
                "data": {"articles": [dump(a) for a in articles]},
            }

        return await self.cache.read_through(
            build_key(ARTICLES_CATEGORY, category, page, limit), settings.ARTICLE_LIST_CACHE_TTL, build
        )

    async def get_article(self, slug: str) -> Payload:
        async def build():
            article = await self.store.find_by_slug(slug)
            if article is None:
                raise ArticleNotFound("Article not found")
            key_events = article.content.key_events() if article.is_live else None
            return {
                **dump(article),
                "keyEvents": [e.model_dump(mode="json", by_alias=True) for e in key_events] if key_events is not None else None,
            }

        return await self.cache.read_through(build_key(ARTICLE, slug), settings.ARTICLE_CACHE_TTL, build)

    async def get_similar_articles(self, slug: str) -> Payload:
        async def build():
            article = await self.store.find_by_slug(slug)
            if article is None:
                raise ArticleNotFound("Article not found")
            similar = await self.store.find(
                ArticleFilter(tags_any=article.tags, exclude_slug=article.slug), limit=SIMILAR_LIMIT
            )
            return {"articles": [dump(a) for a in similar]}

        return await self.cache.read_through(build_key(ARTICLE_SIMILAR, slug), settings.SIMILAR_CACHE_TTL, build)

    async def get_headline(self) -> Payload:
        async def build():
            headline = await self.store.find_one(ArticleFilter(is_headline=True))
            if headline is None:
                raise ArticleNotFound("No headline article found")
            similar = await self.store.find(
                ArticleFilter(tags_any=headline.tags, is_headline=False), limit=HEADLINE_SIMILAR_LIMIT
            )
            return {"headline": dump(headline), "similarArticles": [dump(a) for a in similar]}

        return await self.cache.read_through(HEADLINE_MAIN, settings.HEADLINE_CACHE_TTL, build)

    async def get_category_headline(self, category: str) -> Payload:
        async def build():
            headline = await self.store.find_one(
                ArticleFilter(category_exact=category, is_category_headline=True)
            )
            if headline is None:
                raise ArticleNotFound("No category headline found")
            similar = await self.store.find(
                ArticleFilter(category_exact=category, is_category_headline=False, exclude_ids=[headline.id]),
                limit=HEADLINE_SIMILAR_LIMIT,
            )
            return {"categoryHeadline": dump(headline), "similarArticles": [dump(a) for a in similar]}

        return await self.cache.read_through(
            build_key(CATEGORY_HEADLINE, category), settings.HEADLINE_CACHE_TTL, build
        )

# Global instance
article_service = ArticleService()
