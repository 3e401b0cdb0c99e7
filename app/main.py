import logging
import logging.config

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.routers.build import limiter, router as build_router
from app.routers.deploy import router as deploy_router
from app.routers.edge import router as edge_router
from app.routers.playground import router as playground_router
from app.routers.worker import router as worker_router

logging.config.dictConfig(
    {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "format": '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
            },
        },
        "root": {"level": "INFO", "handlers": ["console"]},
    }
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Landing Engine – Static Site Builder API",
    description=(
        "Renders landing sites to static HTML with SEO validation, sitemaps "
        "and feeds, and generates the edge worker that serves them with A/B "
        "testing and personalisation."
    ),
    version="1.0.0",
)

# Rate-limiting state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception for %s", request.url)
    return JSONResponse(status_code=500, content={"detail": "An unexpected error occurred."})


app.include_router(build_router)
app.include_router(deploy_router)
app.include_router(playground_router)
app.include_router(worker_router)
app.include_router(edge_router)


@app.get("/", summary="Health check")
async def root() -> dict:
    return {"message": "Hello from Landing Engine"}
