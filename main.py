from fastapi import FastAPI, HTTPException, Request, Depends, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
import logging
import structlog
import time
from contextlib import asynccontextmanager

from errors import HoldingsError
from models import RebalanceRequest, RebalanceResponse, ErrorResponse, HealthResponse
from services import RebalanceService, get_rebalance_service
from config import get_settings

settings = get_settings()


def configure_logging(log_level: str, log_format: str) -> None:
    logging.basicConfig(format="%(message)s", level=log_level.upper())

    renderer = (
        structlog.processors.JSONRenderer()
        if log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


configure_logging(settings.log_level, settings.log_format)

logger = structlog.get_logger()

# Rate limiting
limiter = Limiter(key_func=get_remote_address)


def rate_limit() -> str:
    return f"{get_settings().rate_limit_per_minute}/minute"


# Application lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting Rebalance API", version=settings.app_version, environment=settings.environment)
    yield
    # Shutdown
    logger.info("Shutting down Rebalance API")

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Computes the exchanges that move account holdings from their current to their desired amounts",
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Add rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=settings.allowed_methods,
    allow_headers=settings.allowed_headers,
)

# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    if not settings.enable_detailed_logging:
        return await call_next(request)

    start_time = time.time()

    logger.info(
        "Request started",
        method=request.method,
        url=str(request.url),
        client_ip=request.client.host if request.client else None
    )

    response = await call_next(request)

    process_time = time.time() - start_time
    logger.info(
        "Request completed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
        process_time=round(process_time, 4)
    )

    return response

# Health check endpoint
@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Check API health"
)
async def health_check():
    return HealthResponse(status="healthy", version=settings.app_version)

# Main rebalance endpoint
@app.post(
    "/rebalance",
    response_model=RebalanceResponse,
    status_code=status.HTTP_200_OK,
    summary="Rebalance Holdings",
    description="Validate current and desired holdings and compute the exchanges between them",
    responses={
        200: {"description": "Exchanges computed successfully"},
        422: {"description": "Invalid holdings", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded"},
        500: {"description": "Internal server error"}
    }
)
@limiter.limit(rate_limit)
async def rebalance(
    request: Request,
    rebalance_request: RebalanceRequest,
    service: RebalanceService = Depends(get_rebalance_service)
):
    try:
        return service.rebalance(rebalance_request)

    except HoldingsError:
        raise

    except Exception as e:
        logger.error(
            "Rebalance request failed with unexpected error",
            error=str(e),
            exc_info=True
        )
        raise HTTPException(
            status_code=500,
            detail="Internal server error"
        )

# Exception handlers
@app.exception_handler(HoldingsError)
async def holdings_exception_handler(request: Request, exc: HoldingsError):
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            detail=str(exc),
            error_code=exc.kind.code,
            context=exc.to_dict()
        ).model_dump(mode="json")
    )

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            detail=exc.detail,
            error_code=f"HTTP_{exc.status_code}"
        ).model_dump(mode="json")
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        error=str(exc),
        url=str(request.url),
        method=request.method,
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            detail="Internal server error",
            error_code="INTERNAL_ERROR"
        ).model_dump(mode="json")
    )

# Root endpoint
@app.get("/", include_in_schema=False)
async def root():
    return {"message": settings.app_name, "docs": "/docs"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
