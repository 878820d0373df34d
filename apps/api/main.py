"""
Audit Credits - FastAPI Backend
Main application entry point with health check and API routing.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from config import settings, validate_security_settings
from database import engine, Base
import models  # noqa: F401
from routers import (
    health,
    auth,
    credits,
    reports,
    airdrop,
    wallet,
    burns,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    print("🚀 Starting Audit Credits API...")
    validate_security_settings()
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            print("🗄️ Database schema verified.")
        except Exception as e:
            print(f"⚠️ Database bootstrap skipped: {e}")
    if not settings.REPORT_GENERATION_ENABLED:
        print("📄 Report generation disabled; approvals will not enqueue jobs.")
    if settings.ALLOW_DEV_SESSIONS:
        print("⚠️ Dev session issuance is enabled at /auth/session.")
    yield
    # Shutdown
    await engine.dispose()
    print("👋 Shutting down API...")


app = FastAPI(
    title="Audit Credits API",
    description="Browse security audit reports, pay for access with credits, and curate findings",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(credits.router, prefix="/credits", tags=["Credits"])
app.include_router(reports.router, prefix="/reports", tags=["Reports"])
app.include_router(airdrop.router, prefix="/airdrop", tags=["Airdrop"])
app.include_router(wallet.router, prefix="/wallet", tags=["Wallet"])
app.include_router(burns.router, prefix="/burns", tags=["Burns"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Audit Credits API",
        "version": "0.1.0",
        "status": "running"
    }
