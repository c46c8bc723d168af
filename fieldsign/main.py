"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fieldsign.api.routes import clear_sessions, router
from fieldsign.config import settings
from fieldsign.utils.logger import logger

UPLOAD_HINT = (
    "Use Content-Type: multipart/form-data. "
    "Required: 'file' (PDF). Optional: 'title'. "
    "Example: curl -X POST ... -F 'file=@doc.pdf' -F 'title=Lease'"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info("Application startup complete")
    yield
    # Shutdown
    clear_sessions()
    logger.info("Application shutdown")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Place signature fields on documents and export the signed PDF.",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Export-Warnings"],
)

# Include routers
app.include_router(router, prefix="/api/v1")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return 422 with validation details and a hint for the upload endpoint."""
    detail = exc.errors()
    payload: dict[str, object] = {"detail": jsonable_errors(detail)}
    if request.url.path.endswith("/sessions/upload"):
        hint = UPLOAD_HINT
        ct = request.headers.get("content-type", "")
        if "multipart/form-data" not in ct:
            payload["content_type_received"] = ct or "(none)"
            hint += " Your request had Content-Type: " + (ct or "missing") + "."
        payload["hint"] = hint
    logger.warning(f"Validation error on {request.url.path}: {detail}")
    return JSONResponse(status_code=422, content=payload)


def jsonable_errors(errors) -> list[dict]:
    """Pydantic error contexts may carry exception objects; stringify them."""
    cleaned = []
    for error in errors:
        item = dict(error)
        if "ctx" in item:
            item["ctx"] = {k: str(v) for k, v in item["ctx"].items()}
        cleaned.append(item)
    return cleaned


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "operational",
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
