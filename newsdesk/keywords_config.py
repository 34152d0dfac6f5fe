from typing import Dict

# Keyword relevance weights used by the relevance scorer.
# Keys are matched case-insensitively against title + description and
# against article tags.
KEYWORD_RELEVANCE: Dict[str, float] = {
    # Breaking / urgency
    "breaking": 5,
    "exclusive": 4,
    "live": 3,
    "just in": 4,
    "developing": 3,

    # Politics & governance
    "election": 4,
    "president": 3,
    "parliament": 3,
    "government": 2,
    "minister": 2,
    "court": 2,
    "corruption": 3,

    # Economy
    "economy": 3,
    "inflation": 3,
    "cedi": 3,
    "budget": 2,
    "fuel prices": 3,
    "imf": 3,

    # Security & emergencies
    "flood": 3,
    "fire": 2,
    "accident": 2,
    "attack": 3,
    "protest": 3,

    # Sport
    "black stars": 3,
    "afcon": 3,
    "world cup": 3,
    "transfer": 2,

    # Entertainment
    "music": 1,
    "movie": 1,
    "album": 1,
    "award": 2,
    "celebrity": 1,

    # Health & education
    "health": 2,
    "outbreak": 4,
    "education": 2,
}
