"""Local preview of deployed sites through the edge request handler."""

import random

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response

from app.routers.deploy import get_store
from app.services.deploy import DirectoryStore
from app.services.edge import EdgeRequest, handle_request

router = APIRouter(prefix="/edge", tags=["Edge preview"])


@router.get(
    "/{prefix}/{path:path}",
    summary="Serve a deployed site the way its edge worker would",
    description=(
        "Applies A/B assignment, edge rules and popup injection using the "
        "site's stored worker configuration.  Honours the `Cookie`, `Referer` "
        "and `CF-IPCountry` request headers."
    ),
)
async def serve(
    prefix: str,
    path: str,
    request: Request,
    store: DirectoryStore = Depends(get_store),
) -> Response:
    config = store.load_worker_config(prefix)
    if config is None:
        raise HTTPException(status_code=404, detail=f"No site deployed under '{prefix}'.")

    edge_request = EdgeRequest(
        path="/" + path,
        query=dict(request.query_params),
        cookie=request.headers.get("cookie", ""),
        referrer=request.headers.get("referer", ""),
        country=request.headers.get("cf-ipcountry", ""),
    )
    result = await handle_request(config, store, edge_request, random.random)
    return Response(content=result.body, status_code=result.status, headers=result.headers)
