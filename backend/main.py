"""
NECTA Results — O-Level / A-Level grading, division and ranking engine.
FastAPI backend entry point.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from routes.grading import router as grading_router
from routes.reports import router as reports_router
from routes.results import router as results_router
from routes.upload import router as upload_router
from settings import ALLOWED_ORIGINS, LOG_LEVEL, RANK_BY, SCHOOL_NAME

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="School Results API",
    description=(
        "NECTA O-Level and A-Level grading, best-subject selection, "
        "division classification and class ranking."
    ),
    version="1.0.0",
)

# CORS: allow the frontend dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register route modules
app.include_router(grading_router, prefix="/api/grading", tags=["Grading"])
app.include_router(results_router, prefix="/api/results", tags=["Results"])
app.include_router(upload_router, prefix="/api/upload", tags=["Upload"])
app.include_router(reports_router, prefix="/api/reports", tags=["Reports"])


@app.get("/api/health")
async def health_check():
    return {
        "status": "ok",
        "school_name": SCHOOL_NAME,
    }


@app.get("/api/config")
async def get_config():
    """Return server configuration to the frontend."""
    return {
        "school_name": SCHOOL_NAME,
        "rank_by": RANK_BY,
        "curricula": ["O_LEVEL", "A_LEVEL"],
    }
