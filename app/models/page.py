from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class PageKind(str, Enum):
    """Page kinds a template provides a layout for."""

    post = "post"
    page = "page"
    category = "category"
    index = "index"


class FormEmbed(BaseModel):
    """A rendered lead-capture form attached to a page.

    ``after_content`` forms are appended after the body; ``placeholder`` forms
    replace the ``{{FORM:<placeholder_id>}}`` token inside the body.
    """

    form_id: str
    position: Literal["after_content", "placeholder"] = "after_content"
    placeholder_id: Optional[str] = None
    form_html: str


class PageVariant(BaseModel):
    """One arm of an A/B experiment on a page."""

    variant_key: str
    content: Optional[str] = None
    title: Optional[str] = None
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    weight: int = Field(default=50, ge=0)
    is_control: bool = False


class LandingPage(BaseModel):
    id: str
    slug: str
    page_type: PageKind = PageKind.page
    title: str
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    content: Optional[str] = None  # HTML fragment
    og_image: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    author_name: Optional[str] = None
    word_count: Optional[int] = None
    reading_time: Optional[int] = None
    featured_image_url: Optional[str] = None
    is_published: bool = False
    published_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None


class BuildPageInput(LandingPage):
    """A page record together with its form embeds and experiment variants."""

    forms: List[FormEmbed] = Field(default_factory=list)
    variants: List[PageVariant] = Field(default_factory=list)
