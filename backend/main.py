from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from api.v1 import auth, users, payments, wallet, points, admin
from core.config import settings
from db.base import initialize_database
from db.session import engine, SessionLocal
from sqlalchemy import text
from utils.logging_config import configure_logging, RequestContextMiddleware

# Configure logging with date-based files and TTL retention
logger = configure_logging("playoga")

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
)

# Global exception handler to ensure 500s for unexpected errors
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error at {request.url.path}: {type(exc).__name__}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})

# Malformed bodies are plain 400s for the client, like every other rejected input
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info(f"Rejected request body at {request.url.path}: {len(exc.errors())} error(s)")
    return JSONResponse(status_code=400, content={"detail": "Invalid request"})

# Add GZip compression for larger JSON payloads
app.add_middleware(GZipMiddleware, minimum_size=500)

# Add logging context middleware to capture user_id and API path
app.add_middleware(RequestContextMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_origin_regex=settings.ALLOWED_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["authorization", "content-type", "x-client-info", "apikey"],
)

# Include routers
app.include_router(auth.router, tags=["Authentication"])
app.include_router(users.router, tags=["Users"])
app.include_router(payments.router, tags=["Payments"])
app.include_router(wallet.router, tags=["Wallet"])
app.include_router(points.router, tags=["Points"])
app.include_router(admin.router, tags=["Admin"])

@app.on_event("startup")
async def startup_db_client():
    """Create tables if they do not exist yet"""
    await initialize_database()
    logger.info("Application startup complete")

@app.on_event("shutdown")
async def shutdown_db_client():
    await engine.dispose()
    logger.info("Application shutdown complete")

@app.get("/")
async def root():
    return {"message": settings.APP_NAME, "version": settings.VERSION}

@app.get("/health")
async def health_check():
    # Actively check DB connectivity
    try:
        async with SessionLocal() as db:
            await db.execute(text("SELECT 1"))
        db_status = "sql_connected"
    except Exception as e:
        logger.warning(f"Health SQL check failed: {type(e).__name__}")
        db_status = "sql_unavailable"
    return {"status": "healthy" if db_status == "sql_connected" else "degraded", "database": db_status}
