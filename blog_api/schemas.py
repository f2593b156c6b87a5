import re
from datetime import date

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

SLUG_RE = re.compile(r"^[a-z0-9-]{3,100}$")
HEX_COLOR_RE = r"^#(?:[0-9a-fA-F]{3,4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$"
YOUTUBE_RE = re.compile(
    r"^(https?://)?(www\.|m\.)?"
    r"(youtube\.com/(watch\?v=|embed/|shorts/|live/)|youtu\.be/)"
    r"[\w-]{6,}([?&#].*)?$"
)

# INTEGER columns are 32-bit on Postgres; ids and page numbers stay below this.
INT32_MAX = 2**31 - 1

INVALID_SLUG_MESSAGE = (
    "Custom URL must be 3-100 characters long and contain only "
    "lowercase letters, numbers, and hyphens"
)


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


# --- Category ---

class CategoryCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    name: str = Field(min_length=1, max_length=100)
    background_color: str | None = Field(None, alias="backgroundColor", pattern=HEX_COLOR_RE)
    font_color: str | None = Field(None, alias="fontColor", pattern=HEX_COLOR_RE)


class CategoryUpdate(BaseModel):
    """Only the fields present in the request body are changed."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    name: str | None = Field(None, min_length=1, max_length=100)
    background_color: str | None = Field(None, alias="backgroundColor", pattern=HEX_COLOR_RE)
    font_color: str | None = Field(None, alias="fontColor", pattern=HEX_COLOR_RE)


# --- Post ---

class _PostFields(BaseModel):
    """Validation shared by create and update payloads."""

    model_config = ConfigDict(str_strip_whitespace=True)

    custom_url: str | None = None
    category_id: int | None = Field(None, ge=1, le=INT32_MAX)
    meta_description: str | None = Field(None, max_length=160)
    social_title: str | None = Field(None, max_length=170)
    social_description: str | None = Field(None, max_length=240)
    seo_keywords: list[str] | None = None
    youtube_url: str | None = None
    publish_date: date | None = None

    @field_validator(
        "custom_url",
        "category_id",
        "meta_description",
        "social_title",
        "social_description",
        "youtube_url",
        "publish_date",
        mode="before",
    )
    @classmethod
    def blank_means_null(cls, value):
        return _blank_to_none(value)

    @field_validator("author_email", mode="before", check_fields=False)
    @classmethod
    def strip_email(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("custom_url")
    @classmethod
    def check_slug_format(cls, value: str | None) -> str | None:
        if value is not None and not SLUG_RE.match(value):
            raise ValueError(INVALID_SLUG_MESSAGE)
        return value

    @field_validator("youtube_url")
    @classmethod
    def check_youtube_url(cls, value: str | None) -> str | None:
        if value is not None and not YOUTUBE_RE.match(value):
            raise ValueError("youtubeUrl must be a YouTube video URL")
        return value

    @field_validator("seo_keywords", mode="before")
    @classmethod
    def split_keywords(cls, value):
        if value is None:
            return None
        if isinstance(value, str):
            value = value.split(",")
        keywords = [str(k).strip() for k in value]
        return [k for k in keywords if k]


class PostCreate(_PostFields):
    title: str = Field(min_length=1, max_length=255)
    content: str = Field(min_length=1)
    author_email: EmailStr


class PostUpdate(_PostFields):
    """
    Explicit partial update.  Fields left unset mean "no change"; see
    ``post_service.update_post``.  Supplied title/content/author email
    must still be non-blank.
    """

    title: str | None = Field(None, min_length=1, max_length=255)
    content: str | None = Field(None, min_length=1)
    author_email: EmailStr | None = None


# --- Responses ---

class PaginatedPosts(BaseModel):
    totalItems: int
    posts: list
    currentPage: int
    totalPages: int
