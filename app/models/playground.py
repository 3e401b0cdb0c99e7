from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from app.models.validation import SeoRules


class RenderRequest(BaseModel):
    template: str = Field(max_length=500_000)
    data: Dict[str, Any] = Field(default_factory=dict)
    partials: Dict[str, str] = Field(default_factory=dict)


class RenderResponse(BaseModel):
    html: str


class ValidateRequest(BaseModel):
    html: str = Field(max_length=2_000_000)
    rules: Optional[SeoRules] = None
    allow_form_scripts: bool = False
