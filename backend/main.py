"""
FastAPI application entry point for the course marketplace backend.
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from marketplace.config import settings
from marketplace.database import engine
from marketplace.logging_config import setup_logging
from marketplace.routers import webhooks

# Get logger for request logging
logger = logging.getLogger(__name__)

# Configure logging
setup_logging(settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup: refuse to serve without webhook secrets and a database
    settings.ensure_required()
    logger.info("All required environment variables are set")
    logger.info("Starting up course marketplace API...")

    yield
    # Shutdown
    logger.info("Shutting down course marketplace API...")
    if engine is not None:
        await engine.dispose()


app = FastAPI(
    title="Course Marketplace API",
    description="Backend API for the online course marketplace",
    version="0.1.0",
    lifespan=lifespan
)

# Configure rate limiter
limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Parse CORS origins from config
# In development mode, allow all origins for easier local development
if settings.ENVIRONMENT == "development" or settings.DEBUG:
    cors_origins = ["*"]
else:
    cors_origins = (
        ["*"] if settings.CORS_ORIGINS == "*"
        else [origin.strip() for origin in settings.CORS_ORIGINS.split(",")]
    )

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests with method, path, origin, and response status."""
    origin = request.headers.get("origin", "no-origin")
    logger.info(f"Request: {request.method} {request.url.path} | Origin: {origin}")

    response = await call_next(request)

    logger.info(f"Response: {request.method} {request.url.path} | Status: {response.status_code}")
    return response

# Security headers middleware
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Add security headers to all responses."""
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response

# Register routers
app.include_router(webhooks.router, tags=["webhooks"])


@app.get("/", response_class=PlainTextResponse)
async def root():
    return "API Working"


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/webhook-test")
@limiter.limit("30/minute")
async def webhook_test(request: Request):
    """Report whether the webhook endpoints are reachable and configured."""
    return {
        "message": "Webhook endpoint is accessible",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.ENVIRONMENT,
        "stripeSecretKey": "Set" if settings.STRIPE_SECRET_KEY else "Missing",
        "stripeWebhookSecret": "Set" if settings.STRIPE_WEBHOOK_SECRET else "Missing",
        "clerkWebhookSecret": "Set" if settings.CLERK_WEBHOOK_SECRET else "Missing",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=5000)
