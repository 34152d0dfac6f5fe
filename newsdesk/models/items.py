from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from typing import Optional, List, Union, Literal, Annotated
from datetime import datetime, timezone
import uuid

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

def _new_id() -> str:
    return uuid.uuid4().hex

def _as_list(value):
    # Accepts a single label, a comma separated string or a list
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


class LiveUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=_new_id)
    content_title: str
    content_description: str
    content_detail: str
    content_image_url: Optional[str] = None
    content_published_at: datetime = Field(default_factory=utcnow)
    is_key: bool = Field(default=False, alias="isKey")

    @field_validator("content_published_at")
    @classmethod
    def normalize_published_at(cls, value):
        return as_utc(value)


class PlainContent(BaseModel):
    kind: Literal["plain"] = "plain"
    text: str


class LiveContent(BaseModel):
    kind: Literal["live"] = "live"
    updates: List[LiveUpdate] = Field(default_factory=list)

    def key_events(self) -> List[LiveUpdate]:
        return [u for u in self.updates if u.is_key]


ArticleContent = Annotated[Union[PlainContent, LiveContent], Field(discriminator="kind")]


class ItemBase(BaseModel):
    """Fields shared by stored articles and their feed projection."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=_new_id)
    slug: str = ""
    title: str
    description: str
    category: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    published_at: datetime
    is_headline: bool = Field(default=False, alias="isHeadline")
    is_category_headline: bool = Field(default=False, alias="isCategoryHeadline")
    is_breaking: bool = Field(default=False, alias="isBreaking")
    label: Optional[str] = None
    image_url: Optional[str] = None
    source_name: str = "Ghanaian web"

    @field_validator("published_at")
    @classmethod
    def normalize_published_at(cls, value):
        return as_utc(value)


class ContentItem(ItemBase):
    """Read model used by feed assembly. Never mutated while ranking."""
    is_live: bool = Field(default=False, alias="isLive")


class ScoredItem(ContentItem):
    score: float = 0.0
    is_fresh: bool = Field(default=False, alias="isFresh")


class Article(ItemBase):
    content: ArticleContent
    was_live: bool = Field(default=False, alias="wasLive")
    creator: str = "Admin"
    meta_title: str = ""
    meta_description: str = ""
    breaking_expires_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @computed_field(alias="isLive")
    @property
    def is_live(self) -> bool:
        return isinstance(self.content, LiveContent) and not self.was_live

    def to_content_item(self) -> ContentItem:
        fields = self.model_dump(include=set(ItemBase.model_fields))
        return ContentItem(**fields, is_live=self.is_live)


class ArticleCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    content: str = Field(min_length=1)
    category: List[str] = Field(min_length=1)
    tags: List[str] = Field(default_factory=list)
    published_at: datetime
    is_live: bool = Field(default=False, alias="isLive")
    is_breaking: bool = Field(default=False, alias="isBreaking")
    is_headline: bool = Field(default=False, alias="isHeadline")
    is_category_headline: bool = Field(default=False, alias="isCategoryHeadline")
    label: Optional[str] = None
    image_url: Optional[str] = None
    content_image_url: Optional[str] = None
    creator: Optional[str] = None
    source_name: Optional[str] = None

    @field_validator("category", "tags", mode="before")
    @classmethod
    def split_labels(cls, value):
        return _as_list(value)

    @field_validator("published_at")
    @classmethod
    def normalize_published_at(cls, value):
        return as_utc(value)


class ArticleUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = Field(default=None, min_length=1)
    content: Optional[str] = Field(default=None, min_length=1)
    category: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    published_at: Optional[datetime] = None
    is_breaking: Optional[bool] = Field(default=None, alias="isBreaking")
    is_headline: Optional[bool] = Field(default=None, alias="isHeadline")
    is_category_headline: Optional[bool] = Field(default=None, alias="isCategoryHeadline")
    was_live: Optional[bool] = Field(default=None, alias="wasLive")
    label: Optional[str] = None
    image_url: Optional[str] = None

    @field_validator("category", "tags", mode="before")
    @classmethod
    def split_labels(cls, value):
        if value is None:
            return None
        return _as_list(value)

    @field_validator("published_at")
    @classmethod
    def normalize_published_at(cls, value):
        return as_utc(value) if value is not None else value


class LiveUpdateCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    content_title: str = Field(min_length=1)
    content_description: str = Field(min_length=1)
    content_detail: str = Field(min_length=1)
    content_image_url: Optional[str] = None
    is_key: bool = Field(default=False, alias="isKey")
