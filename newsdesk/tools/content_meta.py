import re

META_TITLE_MAX = 60
META_DESCRIPTION_MAX = 155

def derive_slug(title: str) -> str:
    """URL slug: lowercase, whitespace to dashes, word characters and dashes only."""
    if not title:
        return ""
    slug = str(title).lower()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^\w\-]+", "", slug)
    slug = re.sub(r"\-\-+", "-", slug)
    return slug.strip("-")

def derive_meta_title(title: str) -> str:
    if not title:
        return ""
    cleaned = re.sub(r"[^a-zA-Z0-9\s-]", "", title)
    if len(cleaned) <= META_TITLE_MAX:
        return cleaned
    return cleaned[:META_TITLE_MAX - 3].strip() + "..."

def derive_meta_description(title: str, description: str) -> str:
    if description:
        return description[:META_DESCRIPTION_MAX].strip()
    return f"{title or 'Article'}. Read our detailed coverage."[:META_DESCRIPTION_MAX]
