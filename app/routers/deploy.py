"""Deploy endpoint: build, publish to the local object store, emit the worker."""

import logging

from fastapi import APIRouter, Depends, Request

from app.config import COLLECT_ENDPOINT
from app.models.deploy import DeployRequest, DeployResponse
from app.models.worker_config import WorkerConfig
from app.routers.build import limiter, summarize_validation
from app.services.builder import build_site
from app.services.deploy import DirectoryStore, default_prefix, prepare_build_files
from app.services.tracking import get_tracking_script
from app.services.worker import get_worker_script
from app.themes.clean_blog import CLEAN_BLOG

logger = logging.getLogger(__name__)

router = APIRouter()


def get_store() -> DirectoryStore:
    return DirectoryStore()


@router.post(
    "/deploy",
    response_model=DeployResponse,
    summary="Build and deploy a landing site",
    description=(
        "Builds the site, writes every valid page plus sitemap, robots.txt and "
        "feed under the site's prefix in the object store (unchanged files are "
        "skipped), then generates and stores the edge worker for the given "
        "experiments and edge rules.  Pages failing validation are reported in "
        "`errors` and are not deployed."
    ),
)
@limiter.limit("5/minute")
async def deploy(
    request: Request,
    body: DeployRequest,
    store: DirectoryStore = Depends(get_store),
) -> DeployResponse:
    prefix = body.prefix or default_prefix(body.site)
    logger.info(
        "Deploy request received",
        extra={"site_id": body.site.id, "prefix": prefix, "pages": len(body.pages)},
    )

    result = build_site(body.template or CLEAN_BLOG, body.site, body.pages, body.rules)
    errors = [
        f"{page.slug}{f' [{page.variant_key}]' if page.variant_key else ''}: {issue.rule}: {issue.message}"
        for page in result.pages
        for issue in page.validation.errors
    ]

    tracking = get_tracking_script(body.site.id, COLLECT_ENDPOINT) if body.tracking else None
    summary = store.deploy(prefix, prepare_build_files(result, tracking))

    config = WorkerConfig(
        r2_bucket_binding=prefix,
        collect_endpoint=COLLECT_ENDPOINT,
        site_id=body.site.id,
        fallback_origin=body.fallback_origin,
        experiments=body.experiments,
        edge_rules=body.edge_rules,
    )
    store.save_worker(config, get_worker_script(config))

    return DeployResponse(
        built=len(result.pages),
        prefix=prefix,
        errors=errors,
        validation=summarize_validation(result),
        deploy=summary,
        experiments_configured=len(body.experiments),
        edge_rules_configured=len(body.edge_rules),
    )
