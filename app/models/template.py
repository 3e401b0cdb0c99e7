from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class TemplateParams(BaseModel):
    colors: Dict[str, str] = Field(default_factory=dict)
    fonts: Dict[str, str] = Field(default_factory=dict)
    layout: Dict[str, Any] = Field(default_factory=dict)


class TemplateManifest(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    version: Optional[str] = None
    description: Optional[str] = None
    params: TemplateParams = Field(default_factory=TemplateParams)


class LandingTemplate(BaseModel):
    """Layouts, partials and stylesheet a site is rendered with.

    Templates are shared between sites and are never modified by a build.
    """

    layouts: Dict[str, str]
    partials: Dict[str, str] = Field(default_factory=dict)
    critical_css: str = ""
    theme_css: Optional[str] = None
    manifest: TemplateManifest = Field(default_factory=TemplateManifest)
