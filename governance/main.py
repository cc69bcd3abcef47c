"""
Assistant Governance Kernel - FastAPI Application

Main entry point for the governed-resource lifecycle API.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from governance.config import settings
from governance.logging import setup_logging
from governance.api import approvals, audit
from governance.api.resources import knowledge_router, prompt_router

setup_logging()

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Review, approval and audit for assistant knowledge and system prompts",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(knowledge_router, prefix=settings.api_v1_prefix)
app.include_router(prompt_router, prefix=settings.api_v1_prefix)
app.include_router(approvals.router, prefix=settings.api_v1_prefix)
app.include_router(audit.router, prefix=settings.api_v1_prefix)


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "status": "operational",
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
