from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.build import BuildRequest, PageValidationSummary
from app.models.worker_config import EdgeRule, Experiment


class DeployRequest(BuildRequest):
    prefix: Optional[str] = Field(
        default=None,
        pattern=r"^[A-Za-z0-9][A-Za-z0-9._-]*$",
        description="Object-store key prefix. Defaults to the site's subdomain, domain or id.",
    )
    experiments: List[Experiment] = Field(default_factory=list)
    edge_rules: List[EdgeRule] = Field(default_factory=list)
    fallback_origin: Optional[str] = None
    tracking: bool = True


class DeploySummary(BaseModel):
    uploaded: int
    skipped: int
    errors: List[str]


class DeployResponse(BaseModel):
    built: int
    prefix: str
    errors: List[str]
    validation: List[PageValidationSummary]
    deploy: DeploySummary
    experiments_configured: int
    edge_rules_configured: int
