"""
Main FastAPI Application Entry Point
ClaimFlow Expense Approval Workflow
"""

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import time

from claimflow.config.settings import settings
from claimflow.config.database import engine, Base
from claimflow.utils.exceptions import ClaimFlowError
from claimflow.utils.logger import setup_logger
from claimflow.middleware.logging_middleware import LoggingMiddleware

# Register every table on Base.metadata
from claimflow.models import employee, project, allowance_rate, claim, history  # noqa: F401

# Import routes
from claimflow.routes import auth, claims, projects, allowance_rates, coordinators, organization

# Setup logger
logger = setup_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan events for application startup and shutdown
    """
    logger.info(f"Starting {settings.APP_NAME}...")

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")

    logger.info("Application started successfully")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Expense claim submission and multi-stage approval workflow",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add logging middleware
app.add_middleware(LoggingMiddleware)


# Exception handlers
@app.exception_handler(ClaimFlowError)
async def workflow_exception_handler(request: Request, exc: ClaimFlowError):
    """Render workflow errors with their specific reason"""
    if exc.status_code >= 500:
        logger.error(f"{exc.__class__.__name__} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{exc.__class__.__name__} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": exc.message
        }
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP errors raised by dependencies (authentication, routing)"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": exc.detail
        },
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request schema errors"""
    logger.warning(f"Validation error: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "message": "Validation error",
            "errors": jsonable_encoder(exc.errors())
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.opt(exception=exc).error(f"Unhandled exception: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "message": "Internal server error",
            "detail": str(exc) if settings.DEBUG else "An error occurred"
        }
    )


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "app_name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": time.time()
    }


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint"""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/api/docs",
        "health": "/health"
    }


# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(organization.router, prefix="/api/employees", tags=["Organization"])
app.include_router(claims.router, prefix="/api/expenses", tags=["Expenses"])
app.include_router(projects.router, prefix="/api/projects", tags=["Projects"])
app.include_router(allowance_rates.router, prefix="/api/allowance-rates", tags=["Allowance Rates"])
app.include_router(coordinators.router, prefix="/api/coordinator-departments", tags=["Coordinator Departments"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "claimflow.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
