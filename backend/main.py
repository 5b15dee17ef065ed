"""FastAPI application entry point - Serverless-optimized for Vercel."""
from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.middleware.rate_limit import RateLimitMiddleware
from backend.routes import availability, checkout, distance, webhook
from backend.services.geo import DistanceService
from backend.services.make_client import availability_webhook_url, create_job_webhook_url
from backend.services.stripe_gateway import StripeGateway, webhook_secrets
from backend.services.telegram import TelegramNotifier

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

# Create app
app = FastAPI(
    title="Gilead Courier API",
    description="Quotes, availability, checkout and payment webhooks for courier bookings",
    version="1.0.0",
)

# CORS middleware - restrict to your domain in production
ENVIRONMENT = os.getenv("ENVIRONMENT") or os.getenv("VERCEL_ENV") or "development"
_is_production = ENVIRONMENT not in ("development", "preview")

cors_raw = os.getenv("CORS_ORIGINS")
if _is_production and not cors_raw:
    logging.warning(
        "CORS_ORIGINS not set in production — defaulting to restrictive policy. "
        "Set CORS_ORIGINS=https://www.gileadcouriers.co.uk in environment."
    )
    CORS_ORIGINS: list[str] = []
elif cors_raw:
    CORS_ORIGINS = cors_raw.split(",")
else:
    CORS_ORIGINS = ["http://localhost:3000"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Rate limiting per IP; Stripe webhook deliveries are exempt
WEBHOOK_PATHS = ("/api/stripe/webhook", "/api/webhook")
app.add_middleware(
    RateLimitMiddleware,
    max_requests=int(os.getenv("RATE_LIMIT_PER_MINUTE", "60")),
    window_seconds=60,
    exempt_paths=WEBHOOK_PATHS,
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are client errors: 400, not FastAPI's default 422."""
    return JSONResponse(
        status_code=400,
        content={"detail": jsonable_encoder(exc.errors())},
    )


# Include routes with /api prefix
app.include_router(checkout.router, prefix="/api", tags=["checkout"])
app.include_router(availability.router, prefix="/api", tags=["availability"])
app.include_router(distance.router, prefix="/api", tags=["distance"])
app.include_router(webhook.router, prefix="/api", tags=["webhook"])


@app.get("/api")
async def root():
    """API status endpoint."""
    return {"status": "ok", "service": "gilead-courier-api", "version": "1.0.0"}


@app.get("/api/health")
async def health():
    """Health check: which integrations are configured (never their values)."""
    return {
        "status": "healthy",
        "stripe_configured": StripeGateway.is_configured(),
        "webhook_secrets_configured": len(webhook_secrets()),
        "availability_configured": bool(availability_webhook_url()),
        "create_job_configured": bool(create_job_webhook_url()),
        "telegram_configured": TelegramNotifier.is_configured(),
        "google_routes_configured": DistanceService.google_configured(),
    }


# Vercel will auto-detect the `app` export for FastAPI
