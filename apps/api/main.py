from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import os

from apps.api.routes import destinations, health, home, search
from apps.core.cache import build_result_cache
from apps.core.config import settings
from apps.core.exceptions import DataAccessError, DirectoryError

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Tourism Directory API",
    description="Public read API for destinations: search, similarity, nearby and home sections",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.state.result_cache = build_result_cache(settings)


@app.exception_handler(DirectoryError)
async def directory_error_handler(request: Request, exc: DirectoryError):
    if isinstance(exc, DataAccessError):
        logger.error("Data access failure on %s", request.url.path, exc_info=exc)
        payload = {"success": False, "error_code": exc.error_code, "message": exc.public_message}
    else:
        payload = exc.to_payload()
    return JSONResponse(status_code=exc.status_code, content=payload)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = {}
    for err in exc.errors():
        # drop the "query"/"path" prefix
        loc = [str(p) for p in err.get("loc", ()) if p not in ("query", "path", "body")]
        errors.setdefault(".".join(loc) or "request", []).append(err.get("msg", "invalid value"))
    return JSONResponse(
        status_code=422,
        content={"success": False, "error_code": "VALIDATION_ERROR", "message": "Parámetros inválidos", "errors": errors},
    )


# Include routers
app.include_router(health.router, prefix="/api")
app.include_router(destinations.router, prefix=settings.api_prefix)
app.include_router(search.router, prefix=settings.api_prefix)
app.include_router(home.router, prefix=settings.api_prefix)


@app.on_event("startup")
async def log_startup():
    logger.info(
        "startup complete", extra={"env": settings.environment, "port": os.getenv("PORT", "8000")}
    )


@app.get("/")
async def root():
    return {"message": "Tourism Directory API", "version": "1.0.0"}
