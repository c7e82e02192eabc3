"""
SnazzPay Secure COD
Main FastAPI application
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from snazzpay.config import get_settings
from snazzpay.exceptions import PartialFailure, SnazzPayError
from snazzpay.utils.logger import log
from snazzpay import __version__

# Import routers
from snazzpay.api import health, orders, leads, reports, loyalty

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")

    # Initialize database
    try:
        from snazzpay.models.base import init_db
        init_db()
        log.info("Database initialized")
    except Exception as e:
        log.error(f"Database initialization error: {str(e)}")

    if not (settings.razorpay_key_id and settings.razorpay_key_secret):
        log.warning("Razorpay keys are not set; payment operations will fail with a configuration error")

    yield

    # Shutdown
    log.info("Shutting down application")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    Secure Charge-on-Delivery order service

    - Authorizes (holds) the order amount at checkout
    - Captures on dispatch, voids on pre-dispatch cancellation
    - Cancellation with a service fee: keep the fee, refund the rest
    - Leads, seller queues, Shakti loyalty cards and commission reports
    """,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SnazzPayError)
async def snazzpay_error_handler(request: Request, exc: SnazzPayError):
    if isinstance(exc, PartialFailure):
        log.error(f"{request.method} {request.url.path} -> partial failure: {exc.message}")
    else:
        log.warning(f"{request.method} {request.url.path} -> {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include routers
app.include_router(health.router)
app.include_router(orders.router)
app.include_router(leads.router)
app.include_router(reports.router)
app.include_router(loyalty.router)


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "snazzpay.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
