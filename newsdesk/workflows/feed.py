import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from newsdesk.config import settings
from newsdesk.models.items import ContentItem, ScoredItem, utcnow
from newsdesk.services.cache import (
    CacheGateway, cache, build_key, FEED_MAIN, FEED_CATEGORY, FEED_TAG, NEWS_CATEGORY,
)
from newsdesk.services.database import ArticleFilter, Database, db
from newsdesk.services.logger import logger
from newsdesk.tools.freshness import FreshnessClassifier, classifier
from newsdesk.tools.scorer import RelevanceScorer, scorer

# General feed
GENERAL_DEFAULT_LIMIT = 10
MIN_LATEST_IN_TOP = 2
TOP_SECTION_SIZE = 6

# Category / tag feed
BLENDED_DEFAULT_LIMIT = 30
FIRST_SIX_LATEST = 3
FIRST_SIX_RANKED = 3
MIXED_SECTION_SIZE = 24  # first six + 18 mixed
MIXED_LATEST_COUNT = 8   # 45% of the 18 mixed slots
MIXED_RANKED_COUNT = 10  # 55% of the 18 mixed slots
MIXED_RATIO = "45:55"

# Category news pagination
NEWS_DEFAULT_PAGE = 1
NEWS_DEFAULT_LIMIT = 10


def _ids(items: Iterable[ScoredItem]) -> set:
    return {item.id for item in items}

def _by_score(items: Iterable[ScoredItem]) -> List[ScoredItem]:
    # sorted() is stable with reverse=True, so ties keep the newest-first order
    return sorted(items, key=lambda item: item.score, reverse=True)

def _by_date(items: Iterable[ScoredItem]) -> List[ScoredItem]:
    return sorted(items, key=lambda item: item.published_at, reverse=True)


@dataclass
class FeedResult:
    articles: List[ScoredItem]
    meta: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "articles": [item.model_dump(mode="json", by_alias=True) for item in self.articles],
            "meta": self.meta,
        }


class FeedAssembler:
    """
    Blends freshness and relevance into ranked feeds.

    Inputs are expected newest first, as the content store returns them.
    Every method is pure given its `now`.
    """

    def __init__(self, relevance: Optional[RelevanceScorer] = None, freshness: Optional[FreshnessClassifier] = None):
        self.relevance = relevance or scorer
        self.freshness = freshness or classifier

    def score_items(self, items: Iterable[ContentItem], now: datetime) -> List[ScoredItem]:
        scored = []
        for item in items:
            raw = self.relevance.score(item)
            is_fresh, adjusted = self.freshness.classify(item.published_at, now, raw)
            scored.append(ScoredItem(**item.model_dump(), score=adjusted, is_fresh=is_fresh))
        return scored

    def general(self, items: List[ContentItem], now: datetime, limit: int = GENERAL_DEFAULT_LIMIT) -> FeedResult:
        scored = self.score_items(items, now)
        ranked = _by_score(scored)

        # Newest fresh items lead the top slice, relevance fills the rest
        latest = [item for item in scored if item.is_fresh][:MIN_LATEST_IN_TOP]
        latest_ids = _ids(latest)
        top = (latest + [item for item in ranked if item.id not in latest_ids])[:TOP_SECTION_SIZE]
        top_ids = _ids(top)

        remainder = [item for item in ranked if item.id not in top_ids]
        articles = (top + remainder)[:limit]

        return FeedResult(articles, {
            "total": len(scored),
            "freshCount": sum(1 for item in scored if item.is_fresh),
            "latestInTop": sum(1 for item in latest if item.id in top_ids),
        })

    def blended(
        self,
        items: List[ContentItem],
        now: datetime,
        limit: int = BLENDED_DEFAULT_LIMIT,
        selector: Tuple[str, str] = ("category", ""),
    ) -> FeedResult:
        """
        Category/tag feed: a date-ordered top six picked half by freshness and
        half by relevance, then 18 mixed slots ordered by score, then any
        unused fresh items.
        """
        scored = self.score_items(items, now)
        fresh = [item for item in scored if item.is_fresh]
        ranked = _by_score(scored)

        # First six
        first_latest = fresh[:FIRST_SIX_LATEST]
        chosen = _ids(first_latest)
        first_ranked = [item for item in ranked if item.id not in chosen][:FIRST_SIX_RANKED]
        first_six = _by_date(first_latest + first_ranked)[:TOP_SECTION_SIZE]
        used = _ids(first_six)

        # Mixed 18
        mixed_latest = [item for item in fresh if item.id not in used][:MIXED_LATEST_COUNT]
        used |= _ids(mixed_latest)
        mixed_ranked = [item for item in ranked if item.id not in used][:MIXED_RANKED_COUNT]
        used |= _ids(mixed_ranked)
        mixed = _by_score(mixed_latest + mixed_ranked)

        # Remainder: fresh only
        remaining = [item for item in fresh if item.id not in used][:max(0, limit - MIXED_SECTION_SIZE)]

        articles = (first_six + mixed + remaining)[:limit]

        name, value = selector
        return FeedResult(articles, {
            name: value,
            "total": len(scored),
            "freshCount": len(fresh),
            "sections": {
                "firstSix": {
                    "latest": len(first_latest),
                    "ranked": len(first_ranked),
                },
                "mixedSection": {
                    "latest": MIXED_LATEST_COUNT,
                    "ranked": MIXED_RANKED_COUNT,
                    "ratio": MIXED_RATIO,
                },
                "remaining": {
                    "type": "latestOnly",
                    "count": len(remaining),
                },
            },
            "freshnessThreshold": self.freshness.describe_threshold(),
        })

    def category_news(
        self,
        items: List[ContentItem],
        now: datetime,
        category: str,
        page: int = NEWS_DEFAULT_PAGE,
        limit: int = NEWS_DEFAULT_LIMIT,
    ) -> FeedResult:
        """Plain relevance pagination, no freshness blending."""
        scored = self.score_items(items, now)
        ranked = _by_score(scored)
        skip = (page - 1) * limit
        total = len(ranked)

        return FeedResult(ranked[skip:skip + limit], {
            "category": category,
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": math.ceil(total / limit),
            "freshCount": sum(1 for item in scored if item.is_fresh),
        })


class FeedService:
    """Serves assembled feeds through the response cache."""

    def __init__(
        self,
        store: Optional[Database] = None,
        cache_gateway: Optional[CacheGateway] = None,
        assembler: Optional[FeedAssembler] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = db if store is None else store
        self.cache = cache if cache_gateway is None else cache_gateway
        self.assembler = assembler or FeedAssembler()
        self.clock = clock

    async def _candidates(self, filter: ArticleFilter) -> List[ContentItem]:
        articles = await self.store.find(filter)
        return [article.to_content_item() for article in articles]

    async def _serve(self, key: str, ttl: int, assemble: Callable[[List[ContentItem], datetime], FeedResult], filter: ArticleFilter):
        async def build():
            items = await self._candidates(filter)
            result = assemble(items, self.clock())
            logger.info(f"Assembled {key}: {len(result.articles)} of {len(items)} articles")
            return result.to_payload()

        return await self.cache.read_through(key, ttl, build)

    async def get_feed(self, limit: int = GENERAL_DEFAULT_LIMIT) -> Tuple[Dict[str, Any], bool]:
        return await self._serve(
            build_key(FEED_MAIN, limit),
            settings.FEED_CACHE_TTL,
            lambda items, now: self.assembler.general(items, now, limit),
            ArticleFilter(is_headline=False),
        )

    async def get_feed_by_category(self, category: str, limit: int = BLENDED_DEFAULT_LIMIT) -> Tuple[Dict[str, Any], bool]:
        return await self._serve(
            build_key(FEED_CATEGORY, category, limit),
            settings.FEED_CACHE_TTL,
            lambda items, now: self.assembler.blended(items, now, limit, ("category", category)),
            ArticleFilter(category=category, is_category_headline=False),
        )

    async def get_feed_by_tags(self, tag: str, limit: int = BLENDED_DEFAULT_LIMIT) -> Tuple[Dict[str, Any], bool]:
        return await self._serve(
            build_key(FEED_TAG, tag, limit),
            settings.FEED_CACHE_TTL,
            lambda items, now: self.assembler.blended(items, now, limit, ("tag", tag)),
            ArticleFilter(tag=tag),
        )

    async def get_news_by_category(
        self, category: str, page: int = NEWS_DEFAULT_PAGE, limit: int = NEWS_DEFAULT_LIMIT
    ) -> Tuple[Dict[str, Any], bool]:
        return await self._serve(
            build_key(NEWS_CATEGORY, category, page, limit),
            settings.NEWS_CACHE_TTL,
            lambda items, now: self.assembler.category_news(items, now, category, page, limit),
            ArticleFilter(category=category, is_category_headline=False),
        )

# Global instance
feed_service = FeedService()
