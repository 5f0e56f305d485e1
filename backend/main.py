"""
main.py — FastAPI Application Entry Point
==========================================

Boots the API, configures logging and CORS, registers routers, and inits the DB.
Run with:  uvicorn main:app --reload --port 8000
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import (
    CORS_ORIGINS, LOG_LEVEL, PAYMENT_PROVIDER,
    SHOTSTACK_API_KEY, PEXELS_API_KEY, ELEVEN_LABS_API_KEY,
    GEMINI_API_KEY, ANTHROPIC_API_KEY, OPENAI_API_KEY,
    PAYSTACK_SECRET_KEY, STRIPE_SECRET_KEY,
)
from database import init_db
from routers import (
    admin, ai, blog, notifications, payments, profiles, subscriptions,
    templates, videos,
)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"

# ── Create the FastAPI application ───────────────────────────
app = FastAPI(
    title="SmartVid API",
    description="AI video creation: scenes, narration, stock footage and cloud rendering",
    version=VERSION,
)

# ── CORS: allow the web frontend to call us ─────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Register API routers ─────────────────────────────────────
app.include_router(profiles.router, prefix="/api", tags=["profile"])
app.include_router(subscriptions.router, prefix="/api", tags=["subscriptions"])
app.include_router(payments.router, prefix="/api", tags=["payments"])
app.include_router(videos.router, prefix="/api", tags=["videos"])
app.include_router(ai.router, prefix="/api", tags=["ai"])
app.include_router(templates.router, prefix="/api", tags=["templates"])
app.include_router(notifications.router, prefix="/api", tags=["notifications"])
app.include_router(admin.router, prefix="/api", tags=["admin"])
app.include_router(blog.router, prefix="/api", tags=["blog"])
app.include_router(blog.sitemap_router, tags=["sitemap"])


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ── Startup event: create DB tables ─────────────────────────
@app.on_event("startup")
async def on_startup():
    init_db()


@app.get("/api/health")
async def health_check():
    return {
        "status": "ok",
        "service": "smartvid",
        "version": VERSION,
        "integrations": {
            "render": bool(SHOTSTACK_API_KEY),
            "stock_media": bool(PEXELS_API_KEY),
            "speech": bool(ELEVEN_LABS_API_KEY),
            "llm": any([GEMINI_API_KEY, ANTHROPIC_API_KEY, OPENAI_API_KEY]),
            "payments": PAYMENT_PROVIDER,
            "payments_configured": bool(
                STRIPE_SECRET_KEY if PAYMENT_PROVIDER == "stripe" else PAYSTACK_SECRET_KEY
            ),
        },
    }
