import logging
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from sqlalchemy import text

from app.config import settings
from app.core.errors import AppError
from app.core.middleware import SecurityHeadersMiddleware
from app.database.session import SessionLocal, init_db
from app.modules.auth import routes as auth_routes
from app.modules.model_definitions import routes as model_definitions_routes
from app.modules.records import routes as records_routes
from app.modules.users import routes as users_routes

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
app = FastAPI(title=settings.app_name, debug=settings.debug, redirect_slashes=False)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    body = {"error": "validation_error", "detail": "Invalid request", "errors": exc.errors()}
    return JSONResponse(status_code=400, content=jsonable_encoder(body))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    detail = "Internal server error" if settings.is_production else str(exc)
    return JSONResponse(status_code=500, content={"error": "internal_error", "detail": detail})


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module_routes in (auth_routes, users_routes, model_definitions_routes, records_routes):
    app.include_router(module_routes.router, prefix=API_PREFIX)


@app.on_event("startup")
async def startup_event():
    init_db()
    logger.info("%s started (%s)", settings.app_name, settings.environment)


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("%s stopping", settings.app_name)


@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.app_name}", "status": "healthy"}


@app.get("/health")
@limiter.exempt
async def health():
    return {"status": "healthy"}


@app.get("/ready")
@limiter.exempt
async def ready():
    """Readiness probe: the relational store must answer."""
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("Readiness check failed: %s", e)
        return JSONResponse(status_code=503, content={"status": "unavailable"})
    return {"status": "ready"}
