import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

import config
from exceptions import (
    AuthorizationError,
    ChainIntegrityError,
    ConcurrencyConflict,
    InvalidTransitionError,
    NotFoundError,
    PDCError,
    ValidationError,
)
from logging_config import configure_logging
from routers.pdcs import router as pdc_router

configure_logging()
logger = logging.getLogger(__name__)

# App instance
app = FastAPI(title="PDC Management API")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Domain error -> HTTP status
ERROR_STATUS = (
    (ValidationError, 400),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (InvalidTransitionError, 409),
    (ConcurrencyConflict, 409),
    (ChainIntegrityError, 500),
)


def status_for(exc: PDCError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500


@app.exception_handler(PDCError)
async def pdc_error_handler(request: Request, exc: PDCError):
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": ValidationError.code, "detail": "Invalid request", "errors": errors},
    )


# 404 Fallback for unknown routes
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return JSONResponse(status_code=404, content={"error": "Route not found"})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)


app.include_router(pdc_router)


@app.get("/")
def root():
    return {"message": "PDC Management API is running"}


# 500 Fallback Middleware
@app.middleware("http")
async def internal_error_middleware(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=config.PORT, reload=True)
