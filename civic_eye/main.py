import logging
import time
from contextlib import asynccontextmanager

# --- FASTAPI IMPORTS ---
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
import uvicorn

# --- LOCAL MODULES ---
from civic_eye.core.config import LOG_LEVEL, get_cors_origins
from civic_eye.core.exceptions import CivicEyeError
from civic_eye.services.classifier_service import get_image_classifier
from civic_eye.services.mongodb_service import init_db, close_db

# --- ROUTES ---
from civic_eye.routes.auth import router as auth_router
from civic_eye.routes.reports import router as reports_router

# --- LOGGING SETUP ---
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)


# --- TIMING MIDDLEWARE ---
class TimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        return response


# --- LIFESPAN CONTEXT MANAGER ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("🚀 Starting Civic Eye Backend...")
    await init_db()
    get_image_classifier()
    logger.info("✅ All services initialized - Server ready!")

    yield

    # Shutdown
    logger.info("🔄 Shutting down...")
    await close_db()
    logger.info("✅ All services closed gracefully")


# --- APP INITIALIZATION ---
app = FastAPI(title="Civic Eye Backend", lifespan=lifespan)

# --- MIDDLEWARE ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(TimingMiddleware)


# --- REQUEST LOGGING ---
@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"📥 {request.method} {request.url.path}")
    try:
        return await call_next(request)
    except Exception as e:
        logger.error(f"💥 Error causing 500: {request.url.path} - {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# --- ERROR HANDLING ---
@app.exception_handler(CivicEyeError)
async def civic_eye_error_handler(request: Request, exc: CivicEyeError):
    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path}: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


# --- ROUTER MOUNTING ---
app.include_router(auth_router, prefix="/api/auth", tags=["Auth"])
app.include_router(reports_router, prefix="/api", tags=["Reports"])


@app.get("/")
async def root():
    return {"message": "Civic Eye Backend is running"}


@app.get("/health")
async def health():
    return {"status": "ok", "ai_service_configured": get_image_classifier().is_configured}


if __name__ == "__main__":
    uvicorn.run("civic_eye.main:app", host="0.0.0.0", port=8000)
