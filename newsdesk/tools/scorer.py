from typing import Dict, Iterable, Optional
from newsdesk.config import settings
from newsdesk.keywords_config import KEYWORD_RELEVANCE

class RelevanceScorer:
    """
    Keyword-weight relevance score for a content item.

    Every keyword found in the lowercased title + description adds its weight,
    and every tag equal to a keyword adds the weight again, so a tag that also
    appears in the text counts twice. The sum is multiplied by a fixed
    amplification factor. Scores are unbounded and only comparable within a
    single ranking pass.
    """

    def __init__(self, weights: Optional[Dict[str, float]] = None, amplification: Optional[float] = None):
        source = KEYWORD_RELEVANCE if weights is None else weights
        self.weights = {keyword.lower(): weight for keyword, weight in source.items()}
        self.amplification = settings.RELEVANCE_AMPLIFICATION if amplification is None else amplification

    def score_text(self, text: str, tags: Iterable[str] = ()) -> float:
        text = text.lower()
        keyword_score = 0.0

        for keyword, weight in self.weights.items():
            if keyword in text:
                keyword_score += weight

        for tag in tags:
            weight = self.weights.get(tag.lower())
            if weight:
                keyword_score += weight

        return keyword_score * self.amplification

    def score(self, item) -> float:
        text = f"{item.title or ''} {item.description or ''}"
        return self.score_text(text, item.tags or [])

# Global instance
scorer = RelevanceScorer()
