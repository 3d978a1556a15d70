# tenanthub/main.py
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from tenanthub.core.config import settings
from tenanthub.core.db import init_db
from tenanthub.core.errors import AppError, ErrorCode, error_detail
from tenanthub.core.logger import logger
from tenanthub.api.v1.auth import router as auth_router
from tenanthub.api.v1.products import router as products_router
from tenanthub.api.v1.plans import router as plans_router
from tenanthub.api.v1.tenants import router as tenants_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting TenantHub API")
    init_db()
    yield
    logger.info("Shutting down TenantHub API")


app = FastAPI(title="TenantHub API", version="1.0", lifespan=lifespan)


origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Cookie"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    http = exc.to_http()
    return JSONResponse(status_code=http.status_code, content={"detail": http.detail}, headers=http.headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = sorted({".".join(str(p) for p in e["loc"][1:]) for e in exc.errors()})
    return JSONResponse(
        status_code=400,
        content={"detail": error_detail(ErrorCode.VALIDATION_ERROR, "Missing or invalid fields", {"fields": fields})},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception while handling request", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": error_detail(ErrorCode.INTERNAL_ERROR, "Internal server error")},
    )


@app.get("/health")
def health(): return {"ok": True}

app.include_router(auth_router, prefix=settings.API_PREFIX)
app.include_router(products_router, prefix=settings.API_PREFIX)
app.include_router(plans_router, prefix=settings.API_PREFIX)
app.include_router(tenants_router, prefix=settings.API_PREFIX)
