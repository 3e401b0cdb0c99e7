from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class NavLink(BaseModel):
    url: str
    label: str


class LandingSite(BaseModel):
    """Site-level identity, addressing and visual overrides.

    ``config`` is a free-form map; the builder reads ``colors``, ``fonts`` and
    ``lang`` from it.
    """

    id: str
    name: str
    domain: Optional[str] = None
    subdomain: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)
    nav_links: List[NavLink] = Field(default_factory=list)
    analytics_id: Optional[str] = None
