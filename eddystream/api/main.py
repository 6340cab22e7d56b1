"""
EddyStream FastAPI Application
==============================
Main entry point for the REST API.
"""

import logging
from datetime import datetime
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from eddystream.config import get_config
from eddystream.api.schemas import HealthResponse
from eddystream.api.routes import mrd


API_VERSION = "1.0.0"

# Create FastAPI app
app = FastAPI(
    title="EddyStream API",
    description="Multi-Resolution Decomposition of micrometeorological time series",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure CORS for browser clients
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(mrd.router, prefix="/mrd", tags=["MRD"])


@app.get("/", tags=["Health"])
async def root():
    """API root - points to docs."""
    return {
        "message": "EddyStream API",
        "docs": "/docs",
        "version": API_VERSION
    }


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        timestamp=datetime.utcnow(),
        version=API_VERSION
    )


if __name__ == "__main__":
    import uvicorn

    config = get_config()
    logging.basicConfig(level=config.log_level)
    uvicorn.run(app, host=config.api_host, port=config.api_port)
