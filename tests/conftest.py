import asyncio
import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Keep settings (and the log file sink) away from the working tree
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="newsdesk-tests-"))
os.environ.setdefault("LOG_LEVEL", "WARNING")

# Make the repository root importable without installation
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from newsdesk.models.items import ContentItem  # noqa: E402
from newsdesk.services.cache import CacheGateway  # noqa: E402
from newsdesk.services.database import Database  # noqa: E402

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class FixedScorer:
    """Relevance stub returning a preset raw score per item id."""

    def __init__(self, scores):
        self.scores = scores

    def score(self, item) -> float:
        return self.scores.get(item.id, 0.0)


def make_item(item_id: str, hours_ago: float, **fields) -> ContentItem:
    fields.setdefault("title", f"Story {item_id}")
    fields.setdefault("description", "")
    fields.setdefault("category", ["news"])
    return ContentItem(id=item_id, slug=item_id, published_at=NOW - timedelta(hours=hours_ago), **fields)


def newest_first(items):
    return sorted(items, key=lambda item: item.published_at, reverse=True)


@pytest.fixture
def store(tmp_path):
    database = Database(tmp_path / "articles.db")
    asyncio.run(database.init())
    return database


@pytest.fixture
def gateway(tmp_path):
    cache_gateway = CacheGateway(tmp_path / "cache.db", enabled=True)
    asyncio.run(cache_gateway.init())
    return cache_gateway
