# parking_desk/main.py
"""
FastAPI application entry point.
Includes security middleware, domain and global error handlers, and all routers.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from parking_desk.routers import discharge, registration, vehicles, dashboard, admin, health
from parking_desk.dependencies import close_clients
from parking_desk.exceptions import ParkingDeskError
from parking_desk.config import settings
from parking_desk.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="Parking Desk Console API",
    description="Operator console for bulk vehicle discharge and registration.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (operator UI is served separately) ──────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # Restrict to the console UI origin in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional lightweight API key auth for console endpoints.
    Health check, docs and public company sign-up are always open.
    Set API_KEY in .env. Leave empty to disable auth.
    """
    open_paths = {"/api/v1/health", "/api/v1/companies/register", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.open_paths or not settings.API_KEY:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Exception Handlers ───────────────────────────────────────────────────────
@app.exception_handler(ParkingDeskError)
async def domain_exception_handler(request: Request, exc: ParkingDeskError):
    if exc.status_code >= 500:
        logger.warning(f"{request.method} {request.url.path} failed upstream: {exc.message} ({exc.code})")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(discharge.router,    prefix="/api/v1", tags=["🚗 Discharge"])
app.include_router(registration.router, prefix="/api/v1", tags=["📝 Registration"])
app.include_router(vehicles.router,     prefix="/api/v1", tags=["🔍 Vehicles"])
app.include_router(dashboard.router,    prefix="/api/v1", tags=["📊 Dashboard"])
app.include_router(admin.router,        prefix="/api/v1", tags=["👤 Accounts"])
app.include_router(health.router,       prefix="/api/v1", tags=["💚 Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 Parking Desk console starting up...")
    logger.info(f"🔗 Parking API: {settings.PARKING_API_BASE_URL}")
    logger.info(f"🪣 Image bucket: {settings.S3_BUCKET} ({settings.S3_REGION})")
    logger.info(f"📷 Capture camera: {settings.CAMERA_IP}")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 Parking Desk console shutting down...")
    await close_clients()
