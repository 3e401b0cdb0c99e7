from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.page import BuildPageInput, PageKind
from app.models.site import LandingSite
from app.models.template import LandingTemplate
from app.models.validation import SeoRules, ValidationResult


class BuildRequest(BaseModel):
    template: Optional[LandingTemplate] = Field(
        default=None,
        description="Template to render with. The built-in clean-blog template is used when omitted.",
    )
    site: LandingSite
    pages: List[BuildPageInput] = Field(default_factory=list, max_length=500)
    rules: Optional[SeoRules] = None


class BuildResultPage(BaseModel):
    page_id: str
    slug: str
    page_type: PageKind
    url: str  # canonical URL; shared by every variant of the page
    html: str
    validation: ValidationResult
    variant_key: Optional[str] = None


class BuildResult(BaseModel):
    pages: List[BuildResultPage]
    sitemap: str
    robots_txt: str
    rss_feed: str


class PageValidationSummary(BaseModel):
    slug: str
    variant_key: Optional[str] = None
    valid: bool
    issues: int
    errors: List[str]


class BuildResponse(BuildResult):
    built: int
    validation: List[PageValidationSummary]
