"""Template and validator playground endpoints."""

import logging

from fastapi import APIRouter, Request

from app.models.playground import RenderRequest, RenderResponse, ValidateRequest
from app.models.validation import ValidationResult
from app.routers.build import limiter
from app.services.renderer import render
from app.services.validator import validate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Playground"])


@router.post(
    "/render",
    response_model=RenderResponse,
    summary="Render a template against sample data",
)
@limiter.limit("30/minute")
async def render_template(request: Request, body: RenderRequest) -> RenderResponse:
    return RenderResponse(html=render(body.template, body.data, body.partials))


@router.post(
    "/validate",
    response_model=ValidationResult,
    summary="Validate an HTML document against the SEO rules",
    description=(
        "Runs the heading, meta, content, performance and schema checks. "
        "Set `allow_form_scripts` to accept the inline scripts emitted by "
        "embedded forms."
    ),
)
@limiter.limit("30/minute")
async def validate_html(request: Request, body: ValidateRequest) -> ValidationResult:
    result = validate(body.html, body.rules, body.allow_form_scripts)
    logger.info("Validated document", extra={"valid": result.valid, "issues": len(result.issues)})
    return result
