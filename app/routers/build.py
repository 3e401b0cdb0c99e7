"""Site build endpoint: renders a site and reports per-page validation."""

import io
import json
import logging
import zipfile
from typing import List

from fastapi import APIRouter, Query, Request
from fastapi.responses import StreamingResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.models.build import BuildRequest, BuildResponse, BuildResult, PageValidationSummary
from app.models.site import LandingSite
from app.services.builder import build_site
from app.services.deploy import default_prefix, prepare_build_files
from app.services.routes import artifact_path
from app.themes.clean_blog import CLEAN_BLOG

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
router = APIRouter()


def summarize_validation(result: BuildResult) -> List[PageValidationSummary]:
    return [
        PageValidationSummary(
            slug=page.slug,
            variant_key=page.variant_key,
            valid=page.validation.valid,
            issues=len(page.validation.issues),
            errors=[f"{issue.rule}: {issue.message}" for issue in page.validation.errors],
        )
        for page in result.pages
    ]


@router.post(
    "/build",
    response_model=BuildResponse,
    summary="Build a static landing site",
    description=(
        "Renders every published page (and each non-control A/B variant) with "
        "the given template, validates the output against the SEO rules and "
        "generates the sitemap, robots.txt and RSS feed.\n\n"
        "Pass `?format=zip` to download the deployable file layout plus a "
        "JSON index."
    ),
)
@limiter.limit("10/minute")
async def build(
    request: Request,
    body: BuildRequest,
    format: str = Query(default="json", description="Output format: 'json' or 'zip'."),
) -> BuildResponse | StreamingResponse:
    logger.info(
        "Build request received",
        extra={"site_id": body.site.id, "pages": len(body.pages)},
    )
    result = build_site(body.template or CLEAN_BLOG, body.site, body.pages, body.rules)

    if format == "zip":
        return _build_zip_response(body.site, result)

    return BuildResponse(
        **result.model_dump(),
        built=len(result.pages),
        validation=summarize_validation(result),
    )


def _build_zip_response(site: LandingSite, result: BuildResult) -> StreamingResponse:
    """Return a :class:`StreamingResponse` containing a ZIP archive.

    The archive holds:
    - ``index.json`` – every built document with its path and validity.
    - the deployable files (valid pages, ``sitemap.xml``, ``robots.txt``, ``feed.xml``).
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        index = {
            "site_id": site.id,
            "built": len(result.pages),
            "pages": [
                {
                    "slug": page.slug,
                    "variant_key": page.variant_key,
                    "url": page.url,
                    "path": artifact_path(page.page_type, page.slug, page.variant_key),
                    "valid": page.validation.valid,
                }
                for page in result.pages
            ],
        }
        zf.writestr("index.json", json.dumps(index, ensure_ascii=False, indent=2))

        for file in prepare_build_files(result):
            zf.writestr(file.path, file.content)

    buffer.seek(0)
    filename = f"{default_prefix(site)}-site.zip"
    return StreamingResponse(
        buffer,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
