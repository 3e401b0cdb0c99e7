from typing import Annotated, List, Literal, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.page import PageKind
from app.services.routes import route_key


class ExperimentVariant(BaseModel):
    key: str
    weight: float = Field(default=50, ge=0)
    is_control: bool = Field(default=False, alias="isControl")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("key")
    @classmethod
    def _lowercase_key(cls, value: str) -> str:
        # Variant documents are built under lower-cased keys
        return value.lower()


class Experiment(BaseModel):
    """A running A/B experiment for one page."""

    page_slug: str = Field(alias="pageSlug")
    page_type: PageKind = Field(default=PageKind.page, alias="pageType")
    variants: List[ExperimentVariant] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @property
    def route_key(self) -> str:
        """Path key the edge runtime matches requests against."""
        return route_key(self.page_type, self.page_slug)

    @property
    def control_keys(self) -> List[str]:
        """Keys served from the unmodified page document.

        When no variant is flagged as control, the key ``"a"`` is treated as
        the control arm.
        """
        keys = [v.key for v in self.variants if v.is_control]
        return keys or ["a"]


class SwapRule(BaseModel):
    match: str
    field: str
    value: str


class UtmPersistRule(BaseModel):
    type: Literal["utm_persist"] = "utm_persist"
    enabled: bool = False


class GeoSwapRule(BaseModel):
    type: Literal["geo_swap"] = "geo_swap"
    enabled: bool = False
    rules: List[SwapRule] = Field(default_factory=list)


class ReferrerSwapRule(BaseModel):
    type: Literal["referrer_swap"] = "referrer_swap"
    enabled: bool = False
    rules: List[SwapRule] = Field(default_factory=list)


class UtmSwapRule(BaseModel):
    type: Literal["utm_swap"] = "utm_swap"
    enabled: bool = False
    rules: List[SwapRule] = Field(default_factory=list)


EdgeRule = Annotated[
    Union[UtmPersistRule, GeoSwapRule, ReferrerSwapRule, UtmSwapRule],
    Field(discriminator="type"),
]

RuleT = TypeVar("RuleT", UtmPersistRule, GeoSwapRule, ReferrerSwapRule, UtmSwapRule)


class WorkerConfig(BaseModel):
    """Deployment settings for the generated edge worker."""

    r2_bucket_binding: str = Field(alias="r2BucketBinding")
    collect_endpoint: str = Field(alias="collectEndpoint")
    site_id: str = Field(alias="siteId")
    fallback_origin: Optional[str] = Field(default=None, alias="fallbackOrigin")
    experiments: List[Experiment] = Field(default_factory=list)
    edge_rules: List[EdgeRule] = Field(default_factory=list, alias="edgeRules")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def popup_endpoint(self) -> str:
        return self.collect_endpoint.replace("/collect", "/popups")

    def find_experiment(self, route_key: str) -> Optional[Experiment]:
        for experiment in self.experiments:
            if experiment.route_key == route_key and experiment.variants:
                return experiment
        return None

    def enabled_rule(self, rule_cls: Type[RuleT]) -> Optional[RuleT]:
        """Return the first enabled edge rule of class *rule_cls*, or ``None``."""
        for rule in self.edge_rules:
            if isinstance(rule, rule_cls) and rule.enabled:
                return rule
        return None
