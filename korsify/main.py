from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from korsify.api.routes import documents, jobs, tasks
from korsify.config import get_settings
from korsify.core.exceptions import global_exception_handler, http_exception_handler, invalid_transition_exception_handler, request_validation_exception_handler
from korsify.core.lifespan import lifespan
from korsify.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from korsify.jobs.state import InvalidTransitionError

settings = get_settings()

app = FastAPI(title="Korsify course generation", lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None if settings.environment in {"production", "prod"} else "/openapi.json")

app.add_middleware(CORSMiddleware, allow_origins=settings.allowed_origins, allow_credentials=True, allow_methods=["GET", "POST", "OPTIONS"], allow_headers=["content-type", "authorization"], expose_headers=["content-length", "x-request-id"])

app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(InvalidTransitionError, invalid_transition_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": "0.1.0"}


app.include_router(jobs.router, prefix="/v1/jobs", tags=["jobs"])
app.include_router(documents.router, prefix="/v1/documents", tags=["documents"])
app.include_router(tasks.router, prefix="/internal", tags=["tasks"])
