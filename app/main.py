"""Main FastAPI application"""
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from app.core.config import settings
from app.core.redis import redis_client
from app.core.init import init_system
from app.core.rate_limit import configure_rate_limiter

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    await init_system()
    await redis_client.connect()
    limiter = configure_rate_limiter(redis_client if redis_client.connected else None)
    limiter.start_sweeper()
    yield
    # Shutdown
    await limiter.stop_sweeper()
    await redis_client.disconnect()


app = FastAPI(
    title=settings.APP_NAME,
    debug=settings.DEBUG,
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

# Import and include routers
from app.api.v1 import auth, providers, domains, dns

# API routes
app.include_router(auth.router, prefix="/api/v1/auth", tags=["auth"])
app.include_router(providers.router, prefix="/api/v1/providers", tags=["providers"])
app.include_router(domains.router, prefix="/api/v1/domains", tags=["domains"])
app.include_router(dns.router, prefix="/api/v1/domains", tags=["dns"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "DNS Hub API",
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok"}
