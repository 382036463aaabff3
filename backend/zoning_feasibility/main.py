from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from zoning_feasibility.api.routes import router
from zoning_feasibility.config import settings

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.report_store_backend == "database":
        from zoning_feasibility.database import create_tables
        await create_tables()
        logger.info("Report tables ready")
    yield


app = FastAPI(
    title="NYC Zoning Feasibility Pipeline",
    description=(
        "Resolve NYC addresses to tax lots, gather parcel and transit zone "
        "data, and derive FAR, lot coverage, height and density limits for "
        "single lots and assemblages."
    ),
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/")
async def root():
    return {
        "name": "NYC Zoning Feasibility Pipeline",
        "version": VERSION,
        "endpoints": {
            "api_docs": "/docs",
            "health": "/health",
            "single_report": "POST /api/v1/reports",
            "assemblage_report": "POST /api/v1/assemblage-reports",
            "report": "GET /api/v1/reports/{report_id}",
        },
    }


@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "version": VERSION,
        "report_store": settings.report_store_backend,
    }
