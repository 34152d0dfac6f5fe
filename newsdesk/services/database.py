import aiosqlite
import json
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union
from newsdesk.config import settings
from newsdesk.errors import ArticleValidationError, ContentStoreError
from newsdesk.models.items import Article, as_utc
from newsdesk.services.logger import logger

INIT_SQL = """
CREATE TABLE IF NOT EXISTS articles (
    id TEXT PRIMARY KEY,
    slug TEXT UNIQUE NOT NULL,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    content JSON NOT NULL,
    category JSON NOT NULL,
    tags JSON NOT NULL,
    was_live INTEGER NOT NULL DEFAULT 0,
    is_breaking INTEGER NOT NULL DEFAULT 0,
    is_headline INTEGER NOT NULL DEFAULT 0,
    is_category_headline INTEGER NOT NULL DEFAULT 0,
    label TEXT,
    source_name TEXT,
    creator TEXT,
    meta_title TEXT,
    meta_description TEXT,
    image_url TEXT,
    breaking_expires_at TIMESTAMP,
    published_at TIMESTAMP NOT NULL,
    created_at TIMESTAMP NOT NULL,
    updated_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_articles_published ON articles(published_at DESC);
CREATE INDEX IF NOT EXISTS idx_articles_headline ON articles(is_headline);
"""

COLUMNS = (
    "id", "slug", "title", "description", "content", "category", "tags",
    "was_live", "is_breaking", "is_headline", "is_category_headline",
    "label", "source_name", "creator", "meta_title", "meta_description",
    "image_url", "breaking_expires_at", "published_at", "created_at", "updated_at",
)

DEMOTE_HEADLINES_SQL = "UPDATE articles SET is_headline = 0 WHERE is_headline = 1 AND id != ?"

# Only articles sharing a category with the new holder lose the flag
DEMOTE_CATEGORY_HEADLINES_SQL = """
UPDATE articles SET is_category_headline = 0
WHERE is_category_headline = 1 AND id != ?
AND EXISTS (
    SELECT 1 FROM json_each(articles.category)
    WHERE json_each.value IN (SELECT value FROM json_each(?))
)
"""

# Fixed-width UTC timestamps sort lexicographically
TS_FORMAT = "%Y-%m-%d %H:%M:%S.%f"

# Newest first; id breaks publish-time ties so repeated queries agree
DEFAULT_ORDER = "published_at DESC, id ASC"

def to_db_ts(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return as_utc(value).strftime(TS_FORMAT)

def from_db_ts(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.strptime(value, TS_FORMAT).replace(tzinfo=timezone.utc)


@dataclass
class ArticleFilter:
    """Predicates understood by the content store. Unset fields do not filter."""
    category: Optional[str] = None          # case-insensitive exact match on any label
    category_exact: Optional[str] = None    # exact membership
    categories_any: Optional[Sequence[str]] = None
    tag: Optional[str] = None               # case-insensitive substring of any tag
    tags_any: Optional[Sequence[str]] = None
    is_headline: Optional[bool] = None
    is_category_headline: Optional[bool] = None
    exclude_ids: Sequence[str] = ()
    exclude_slug: Optional[str] = None

    def to_sql(self) -> Tuple[str, list]:
        clauses = []
        params = []

        if self.category is not None:
            clauses.append(
                "EXISTS (SELECT 1 FROM json_each(articles.category) WHERE lower(json_each.value) = lower(?))"
            )
            params.append(self.category)
        if self.category_exact is not None:
            clauses.append("EXISTS (SELECT 1 FROM json_each(articles.category) WHERE json_each.value = ?)")
            params.append(self.category_exact)
        if self.categories_any is not None:
            clauses.append(
                "EXISTS (SELECT 1 FROM json_each(articles.category) WHERE json_each.value IN (SELECT value FROM json_each(?)))"
            )
            params.append(json.dumps(list(self.categories_any)))
        if self.tag is not None:
            clauses.append(
                "EXISTS (SELECT 1 FROM json_each(articles.tags) WHERE instr(lower(json_each.value), lower(?)) > 0)"
            )
            params.append(self.tag)
        if self.tags_any is not None:
            clauses.append(
                "EXISTS (SELECT 1 FROM json_each(articles.tags) WHERE json_each.value IN (SELECT value FROM json_each(?)))"
            )
            params.append(json.dumps(list(self.tags_any)))
        if self.is_headline is not None:
            clauses.append("is_headline = ?")
            params.append(int(self.is_headline))
        if self.is_category_headline is not None:
            clauses.append("is_category_headline = ?")
            params.append(int(self.is_category_headline))
        if self.exclude_ids:
            clauses.append(f"id NOT IN ({', '.join('?' for _ in self.exclude_ids)})")
            params.extend(self.exclude_ids)
        if self.exclude_slug is not None:
            clauses.append("slug != ?")
            params.append(self.exclude_slug)

        where = " WHERE " + " AND ".join(clauses) if clauses else ""
        return where, params


def article_to_row(article: Article) -> dict:
    return {
        "id": article.id,
        "slug": article.slug,
        "title": article.title,
        "description": article.description,
        "content": json.dumps(article.content.model_dump(mode="json")),
        "category": json.dumps(article.category),
        "tags": json.dumps(article.tags),
        "was_live": int(article.was_live),
        "is_breaking": int(article.is_breaking),
        "is_headline": int(article.is_headline),
        "is_category_headline": int(article.is_category_headline),
        "label": article.label,
        "source_name": article.source_name,
        "creator": article.creator,
        "meta_title": article.meta_title,
        "meta_description": article.meta_description,
        "image_url": article.image_url,
        "breaking_expires_at": to_db_ts(article.breaking_expires_at),
        "published_at": to_db_ts(article.published_at),
        "created_at": to_db_ts(article.created_at),
        "updated_at": to_db_ts(article.updated_at),
    }

def row_to_article(row) -> Article:
    return Article(
        id=row["id"],
        slug=row["slug"],
        title=row["title"],
        description=row["description"],
        content=json.loads(row["content"]),
        category=json.loads(row["category"]),
        tags=json.loads(row["tags"]),
        was_live=bool(row["was_live"]),
        is_breaking=bool(row["is_breaking"]),
        is_headline=bool(row["is_headline"]),
        is_category_headline=bool(row["is_category_headline"]),
        label=row["label"],
        source_name=row["source_name"] or settings.DEFAULT_SOURCE_NAME,
        creator=row["creator"] or "Admin",
        meta_title=row["meta_title"] or "",
        meta_description=row["meta_description"] or "",
        image_url=row["image_url"],
        breaking_expires_at=from_db_ts(row["breaking_expires_at"]),
        published_at=from_db_ts(row["published_at"]),
        created_at=from_db_ts(row["created_at"]),
        updated_at=from_db_ts(row["updated_at"]),
    )


class Database:
    """
    Article collection on SQLite. Any driver error surfaces as
    ContentStoreError; nothing here retries.
    """

    def __init__(self, db_path: Union[str, Path, None] = None):
        self.db_path = db_path or settings.database_path

    async def init(self):
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        async with self.connection() as conn:
            await conn.executescript(INIT_SQL)
            await conn.commit()
        logger.info(f"Database initialized at {self.db_path}")

    def get_connection(self):
        return aiosqlite.connect(self.db_path)

    @asynccontextmanager
    async def connection(self):
        try:
            async with self.get_connection() as conn:
                conn.row_factory = aiosqlite.Row
                yield conn
        except aiosqlite.Error as e:
            logger.error(f"Content store query failed: {e}")
            raise ContentStoreError(str(e)) from e

    async def find(self, filter: Optional[ArticleFilter] = None, skip: int = 0, limit: Optional[int] = None) -> List[Article]:
        """Matching articles, newest first."""
        where, params = (filter or ArticleFilter()).to_sql()
        sql = f"SELECT * FROM articles{where} ORDER BY {DEFAULT_ORDER}"
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params += [limit, skip]
        async with self.connection() as conn:
            cursor = await conn.execute(sql, params)
            rows = await cursor.fetchall()
        return [row_to_article(row) for row in rows]

    async def find_one(self, filter: Optional[ArticleFilter] = None) -> Optional[Article]:
        found = await self.find(filter, limit=1)
        return found[0] if found else None

    async def count(self, filter: Optional[ArticleFilter] = None) -> int:
        where, params = (filter or ArticleFilter()).to_sql()
        async with self.connection() as conn:
            cursor = await conn.execute(f"SELECT COUNT(*) FROM articles{where}", params)
            row = await cursor.fetchone()
        return row[0]

    async def find_by_id(self, article_id: str) -> Optional[Article]:
        async with self.connection() as conn:
            cursor = await conn.execute("SELECT * FROM articles WHERE id = ?", (article_id,))
            row = await cursor.fetchone()
        return row_to_article(row) if row else None

    async def find_by_slug(self, slug: str) -> Optional[Article]:
        async with self.connection() as conn:
            cursor = await conn.execute("SELECT * FROM articles WHERE slug = ?", (slug,))
            row = await cursor.fetchone()
        return row_to_article(row) if row else None

    async def _demote_headlines(self, conn, article: Article, headline: bool, category_headline: bool):
        if headline:
            await conn.execute(DEMOTE_HEADLINES_SQL, (article.id,))
        if category_headline and article.category:
            await conn.execute(DEMOTE_CATEGORY_HEADLINES_SQL, (article.id, json.dumps(article.category)))

    async def save(self, article: Article, insert: bool = False) -> Article:
        """
        Inserts or replaces an article. When the article carries a headline
        flag, the previous holders are demoted in the same transaction so at
        most one headline (per category) is visible to readers.
        """
        row = article_to_row(article)
        async with self.connection() as conn:
            try:
                await conn.execute("BEGIN IMMEDIATE")
                await self._demote_headlines(conn, article, article.is_headline, article.is_category_headline)
                if insert:
                    placeholders = ", ".join(f":{c}" for c in COLUMNS)
                    await conn.execute(
                        f"INSERT INTO articles ({', '.join(COLUMNS)}) VALUES ({placeholders})", row
                    )
                else:
                    assignments = ", ".join(f"{c} = :{c}" for c in COLUMNS if c != "id")
                    await conn.execute(f"UPDATE articles SET {assignments} WHERE id = :id", row)
                await conn.commit()
            except aiosqlite.IntegrityError as e:
                await conn.rollback()
                logger.warning(f"Rejected article {article.id}: {e}")
                raise ArticleValidationError("Slug must be unique") from e
        return article

    async def insert(self, article: Article) -> Article:
        return await self.save(article, insert=True)

    async def promote_headline(self, article_id: str) -> bool:
        """Set-then-clear of the global headline flag as one transaction. A missing id changes nothing."""
        async with self.connection() as conn:
            await conn.execute("BEGIN IMMEDIATE")
            cursor = await conn.execute("UPDATE articles SET is_headline = 1 WHERE id = ?", (article_id,))
            if cursor.rowcount == 0:
                await conn.rollback()
                return False
            await conn.execute(DEMOTE_HEADLINES_SQL, (article_id,))
            await conn.commit()
        return True

    async def promote_category_headline(self, article_id: str) -> bool:
        """Same as promote_headline, scoped to the categories the article carries."""
        async with self.connection() as conn:
            await conn.execute("BEGIN IMMEDIATE")
            cursor = await conn.execute("SELECT category FROM articles WHERE id = ?", (article_id,))
            row = await cursor.fetchone()
            if row is None:
                await conn.rollback()
                return False
            await conn.execute(DEMOTE_CATEGORY_HEADLINES_SQL, (article_id, row["category"]))
            await conn.execute("UPDATE articles SET is_category_headline = 1 WHERE id = ?", (article_id,))
            await conn.commit()
        return True

    async def delete(self, article_id: str) -> bool:
        async with self.connection() as conn:
            cursor = await conn.execute("DELETE FROM articles WHERE id = ?", (article_id,))
            await conn.commit()
        return cursor.rowcount > 0

db = Database()
