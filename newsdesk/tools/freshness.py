from datetime import datetime, timedelta
from typing import NamedTuple, Optional
from newsdesk.config import settings
from newsdesk.models.items import as_utc

class Freshness(NamedTuple):
    is_fresh: bool
    adjusted_score: float

class FreshnessClassifier:
    def __init__(self, threshold: Optional[timedelta] = None, decay: Optional[float] = None):
        self.threshold = threshold or timedelta(hours=settings.FRESHNESS_THRESHOLD_HOURS)
        self.decay = settings.STALE_SCORE_DECAY if decay is None else decay

    def is_fresh(self, published_at: datetime, now: datetime) -> bool:
        # Inclusive: an item exactly at the threshold is still fresh
        return as_utc(now) - as_utc(published_at) <= self.threshold

    def classify(self, published_at: datetime, now: datetime, raw_score: float) -> Freshness:
        fresh = self.is_fresh(published_at, now)
        return Freshness(fresh, raw_score if fresh else raw_score * self.decay)

    def describe_threshold(self) -> str:
        hours = self.threshold.total_seconds() / 3600
        return f"{hours:g} hours"

# Global instance
classifier = FreshnessClassifier()
