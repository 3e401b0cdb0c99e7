"""Edge worker generation endpoint."""

from fastapi import APIRouter
from fastapi.responses import Response

from app.models.worker_config import WorkerConfig
from app.services.worker import get_worker_script

router = APIRouter()


@router.post(
    "/worker",
    response_class=Response,
    summary="Generate the edge worker script for a site",
    responses={200: {"content": {"application/javascript": {}}}},
)
async def generate_worker(body: WorkerConfig) -> Response:
    return Response(content=get_worker_script(body), media_type="application/javascript")
