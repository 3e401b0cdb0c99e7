from typing import List, Literal

from pydantic import BaseModel, Field


class ValidationIssue(BaseModel):
    severity: Literal["error", "warning"]
    rule: str
    message: str


class ValidationResult(BaseModel):
    valid: bool
    issues: List[ValidationIssue] = Field(default_factory=list)

    @property
    def errors(self) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]


class HeadingRules(BaseModel):
    require_h1_in_article: bool = True
    max_h1: int = 1
    no_skip_levels: bool = True


class MetaRules(BaseModel):
    require_canonical: bool = True
    require_og_image: bool = False
    title_max_length: int = 60
    description_max_length: int = 160


class ContentRules(BaseModel):
    require_alt_on_images: bool = True


class PerformanceRules(BaseModel):
    max_critical_css_bytes: int = 14_000  # 0 disables the check
    zero_js: bool = True
    require_width_height_on_images: bool = True


class SchemaRules(BaseModel):
    require_article_schema: bool = False
    require_breadcrumb_schema: bool = False


class SeoRules(BaseModel):
    """Rule set consumed by :func:`app.services.validator.validate`.

    Mirrors the JSON rules document: five groups, each a flat map of
    boolean/numeric toggles.
    """

    heading_rules: HeadingRules = Field(default_factory=HeadingRules)
    meta_rules: MetaRules = Field(default_factory=MetaRules)
    content_rules: ContentRules = Field(default_factory=ContentRules)
    performance_rules: PerformanceRules = Field(default_factory=PerformanceRules)
    schema_rules: SchemaRules = Field(default_factory=SchemaRules)
