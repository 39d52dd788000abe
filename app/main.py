from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1 import api_router
from app.core.activities.errors import ActivityError
from app.core.config_file import get_settings
from app.core.exceptions import APIException, api_exception_from_activity_error
from app.core.logging import app_logger

settings = get_settings()

app = FastAPI(
    title="Activity Lifecycle API",
    version="0.1.0",
    description="CRM activities: recurrence, SLA tracking, escalation and reminders",
    docs_url="/docs",
    openapi_url="/openapi.json",
)

# CORS configuration
if settings.CORS_ORIGINS:
    origins = [origin.strip() for origin in settings.CORS_ORIGINS.split(",")]
else:
    origins = ["http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:3000"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

def _error_response(exc: APIException) -> JSONResponse:
    # exc.detail already contains {"error": {...}}
    response_content = exc.detail.copy()
    response_content["data"] = None
    return JSONResponse(status_code=exc.status_code, content=response_content)

@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    """Handle APIException and return standard error format."""
    return _error_response(exc)

@app.exception_handler(ActivityError)
async def activity_error_handler(request: Request, exc: ActivityError) -> JSONResponse:
    """Map lifecycle errors (not found, invalid transition, ...) to the error envelope."""
    app_logger.info(f"{request.method} {request.url.path} rejected: {exc.code} {exc.message}")
    return _error_response(api_exception_from_activity_error(exc))

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors and format them according to API contract."""
    details: dict[str, list[str]] = {}
    for error in exc.errors():
        # ["body", "subject"] -> "subject"
        field_path = error["loc"]
        field_name = str(field_path[-1] if len(field_path) > 1 else field_path[0])
        details.setdefault(field_name, []).append(error["msg"])

    response_content = {
        "error": {
            "code": "VALIDATION_ERROR",
            "message": "Validation failed",
            "details": details,
        },
        "data": None,
    }

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=response_content,
    )

@app.get("/healthz", tags=["system"])
def healthz():
    """Health check endpoint."""
    return {
        "status": "ok",
        "env": settings.ENV,
        "debug": settings.DEBUG,
    }

# Include API routers
app.include_router(api_router, prefix="/api/v1")

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
